"""Tests for GitHubRegistrationClient.

The requests session is mocked; no network access required.
"""

from __future__ import annotations

from typing import Any, Dict, Optional
from unittest.mock import MagicMock

import pytest
import requests

from ec2runner.errors import (
    RegistrationError,
    RegistrationTokenError,
    RunnerRegistrationTimeoutError,
    RunnerRemovalError,
)
from ec2runner.github import GitHubRegistrationClient, group_label

RUNNERS_URL = "https://api.github.com/repos/octo/widgets/actions/runners"


def _response(payload: Any = None, status: int = 200, links: Optional[Dict] = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = payload
    resp.links = links or {}
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} Client Error")
    return resp


def _runner(runner_id: int, group: str, status: str = "online") -> Dict[str, Any]:
    return {
        "id": runner_id,
        "name": f"ip-10-0-0-{runner_id}",
        "status": status,
        "labels": [{"name": "self-hosted"}, {"name": group_label(group)}, {"name": "_ec2"}],
    }


def _runners(*runners: Dict[str, Any]) -> MagicMock:
    return _response({"total_count": len(runners), "runners": list(runners)})


@pytest.fixture
def session() -> MagicMock:
    mock = MagicMock()
    mock.headers = {}
    return mock


@pytest.fixture
def client(config, session, fake_sleep) -> GitHubRegistrationClient:
    return GitHubRegistrationClient(config, session=session, sleep=fake_sleep)


def test_session_is_authenticated(client, session):
    assert session.headers["Authorization"] == "Bearer ghp_test"


def test_group_label():
    assert group_label("g1") == "_group-g1"


class TestRegistrationToken:

    def test_returns_token(self, client, session):
        session.request.return_value = _response({"token": "AABBCC", "expires_at": "x"})
        assert client.get_registration_token() == "AABBCC"
        method, url = session.request.call_args[0]
        assert method == "POST"
        assert url == f"{RUNNERS_URL}/registration-token"

    def test_http_error_raises_token_error(self, client, session):
        session.request.return_value = _response({"message": "Bad credentials"}, status=401)
        with pytest.raises(RegistrationTokenError, match="401"):
            client.get_registration_token()

    def test_network_error_raises_token_error(self, client, session):
        session.request.side_effect = requests.ConnectionError("unreachable")
        with pytest.raises(RegistrationTokenError, match="unreachable"):
            client.get_registration_token()

    def test_malformed_payload_raises_token_error(self, client, session):
        session.request.return_value = _response({})
        with pytest.raises(RegistrationTokenError):
            client.get_registration_token()


class TestFindRunner:

    def test_matches_group_label(self, client, session):
        session.request.return_value = _runners(_runner(1, "other"), _runner(2, "g1"))
        assert client.find_runner("g1")["id"] == 2

    def test_none_when_absent(self, client, session):
        session.request.return_value = _runners(_runner(1, "other"))
        assert client.find_runner("g1") is None

    def test_follows_pagination(self, client, session):
        session.request.side_effect = [
            _response(
                {"runners": [_runner(1, "other")]},
                links={"next": {"url": f"{RUNNERS_URL}?page=2"}},
            ),
            _runners(_runner(7, "g1")),
        ]
        assert client.find_runner("g1")["id"] == 7
        assert session.request.call_args_list[1][0][1] == f"{RUNNERS_URL}?page=2"


class TestWaitForRunnerRegistered:

    def test_returns_when_online(self, client, session, sleeps):
        session.request.side_effect = [
            _runners(),
            _runners(_runner(3, "g1", status="offline")),
            _runners(_runner(3, "g1", status="online")),
        ]
        client.wait_for_runner_registered("g1", timeout=30)
        assert session.request.call_count == 3
        assert sleeps == [10.0, 10.0]

    def test_quiet_period_precedes_polling(self, make_config, session, sleeps, fake_sleep):
        config = make_config(registration_quiet_period=30.0)
        session.request.return_value = _runners(_runner(3, "g1"))
        GitHubRegistrationClient(config, session=session, sleep=fake_sleep) \
            .wait_for_runner_registered("g1", timeout=30)
        assert sleeps == [30.0]

    def test_timeout(self, client, session):
        session.request.return_value = _runners()
        with pytest.raises(RunnerRegistrationTimeoutError, match="g1"):
            client.wait_for_runner_registered("g1", timeout=30)
        assert session.request.call_count == 3

    def test_api_failure_is_not_retried(self, client, session):
        session.request.side_effect = requests.ConnectionError("reset")
        with pytest.raises(RegistrationError, match="reset"):
            client.wait_for_runner_registered("g1", timeout=30)
        assert session.request.call_count == 1


class TestRemoveRunner:

    def test_deletes_matching_runner(self, client, session):
        session.request.side_effect = [_runners(_runner(5, "g1")), _response(None, status=204)]
        client.remove_runner("g1")
        method, url = session.request.call_args_list[1][0]
        assert method == "DELETE"
        assert url == f"{RUNNERS_URL}/5"

    def test_missing_runner_is_skipped(self, client, session):
        session.request.return_value = _runners()
        client.remove_runner("g1")
        assert session.request.call_count == 1

    def test_delete_failure_raises(self, client, session):
        session.request.side_effect = [
            _runners(_runner(5, "g1")),
            _response({"message": "Runner is busy"}, status=422),
        ]
        with pytest.raises(RunnerRemovalError, match="422"):
            client.remove_runner("g1")

    def test_list_failure_raises(self, client, session):
        session.request.return_value = _response({}, status=500)
        with pytest.raises(RunnerRemovalError):
            client.remove_runner("g1")
