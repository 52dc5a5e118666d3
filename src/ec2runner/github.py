"""
CI registration client — GitHub's side of the runner lifecycle.

The lifecycle only depends on the RegistrationClient interface:
mint a registration token, wait until the runner for a group is
online, and remove it again. GitHubRegistrationClient implements it
against the repository-level self-hosted runner REST API.

Runners are found again by the ``_group-<group>`` label the boot
script registers them with.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterator, Optional

import requests

from .boot_script import runner_labels
from .config import RunnerConfig
from .errors import (
    RegistrationError,
    RegistrationTokenError,
    RunnerRegistrationTimeoutError,
    RunnerRemovalError,
)
from .polling import attempts_for, wait_for

logger = logging.getLogger(__name__)

_API_VERSION = "2022-11-28"


class RegistrationClient:
    """Abstract CI coordinator used by the lifecycle."""

    def get_registration_token(self) -> str:
        """Mint a one-time runner registration token."""
        raise NotImplementedError

    def wait_for_runner_registered(self, runner_group: str, timeout: float) -> None:
        """Block until a runner for ``runner_group`` is online.

        Raises:
            RunnerRegistrationTimeoutError: If ``timeout`` elapses first.
        """
        raise NotImplementedError

    def remove_runner(self, runner_group: str) -> None:
        """Deregister the runner for ``runner_group``."""
        raise NotImplementedError


def group_label(runner_group: str) -> str:
    """The label that identifies a group's runner on GitHub."""
    return runner_labels(runner_group).split(",", 1)[0]


class GitHubRegistrationClient(RegistrationClient):
    """GitHub REST implementation of RegistrationClient.

    Args:
        config: Runner configuration (token, repository, API URL, timings).
        session: Optional requests session (injectable for tests).
        sleep: Sleep function used by the registration wait.
    """

    def __init__(
        self,
        config: RunnerConfig,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self._sleep = sleep
        self._session = session or requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {config.github_token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": _API_VERSION,
        })

    @property
    def _runners_url(self) -> str:
        return (
            f"{self._config.github_api_url.rstrip('/')}"
            f"/repos/{self._config.owner}/{self._config.repo}/actions/runners"
        )

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        resp = self._session.request(method, url, timeout=30, **kwargs)
        resp.raise_for_status()
        return resp

    # ------------------------------------------------------------------
    # Token
    # ------------------------------------------------------------------

    def get_registration_token(self) -> str:
        """Mint a registration token for the repository.

        Raises:
            RegistrationTokenError: On any HTTP or network failure.
        """
        try:
            resp = self._request("POST", f"{self._runners_url}/registration-token")
            token = resp.json()["token"]
        except (requests.RequestException, KeyError, ValueError) as exc:
            raise RegistrationTokenError(str(exc)) from exc
        logger.info("GitHub registration token is received")
        return token

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _iter_runners(self) -> Iterator[Dict[str, Any]]:
        url: Optional[str] = self._runners_url
        params: Optional[Dict[str, Any]] = {"per_page": 100}
        while url:
            resp = self._request("GET", url, params=params)
            yield from resp.json().get("runners", [])
            url = resp.links.get("next", {}).get("url")
            params = None

    def find_runner(self, runner_group: str) -> Optional[Dict[str, Any]]:
        """Return the GitHub runner carrying the group's label, if any.

        Raises:
            requests.RequestException: On HTTP or network failure.
        """
        label = group_label(runner_group)
        for runner in self._iter_runners():
            names = {lbl.get("name") for lbl in runner.get("labels", [])}
            if label in names:
                return runner
        return None

    def is_runner_online(self, runner_group: str) -> bool:
        try:
            runner = self.find_runner(runner_group)
        except requests.RequestException as exc:
            raise RegistrationError(str(exc)) from exc
        return bool(runner) and runner.get("status") == "online"

    # ------------------------------------------------------------------
    # Wait / remove
    # ------------------------------------------------------------------

    def wait_for_runner_registered(self, runner_group: str, timeout: float) -> None:
        """Wait for the group's runner to come online.

        Sleeps through the configured quiet period first, since a new
        instance needs time to boot and run config.sh.

        Raises:
            RunnerRegistrationTimeoutError: If no online runner appears.
            RegistrationError: If the runner list cannot be fetched.
        """
        quiet = self._config.registration_quiet_period
        interval = self._config.registration_interval
        logger.info(
            "Waiting %gs before polling for the runner of group %s", quiet, runner_group,
        )
        if quiet:
            self._sleep(quiet)

        wait_for(
            lambda: self.is_runner_online(runner_group),
            interval=interval,
            max_attempts=attempts_for(timeout, interval),
            on_timeout=lambda: RunnerRegistrationTimeoutError(runner_group, timeout),
            description=f"runner for group {runner_group} online",
            sleep=self._sleep,
        )
        logger.info("GitHub self-hosted runner for group %s is registered", runner_group)

    def remove_runner(self, runner_group: str) -> None:
        """Delete the group's runner; a missing runner is not an error.

        Raises:
            RunnerRemovalError: On HTTP or network failure.
        """
        try:
            runner = self.find_runner(runner_group)
            if runner is None:
                logger.info(
                    "GitHub self-hosted runner for group %s is not found, "
                    "so the removal is skipped", runner_group,
                )
                return
            self._request("DELETE", f"{self._runners_url}/{runner['id']}")
        except requests.RequestException as exc:
            raise RunnerRemovalError(str(exc)) from exc
        logger.info("GitHub self-hosted runner %s is removed", runner.get("name"))
