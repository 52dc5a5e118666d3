"""Shared test fixtures for ec2runner."""

from __future__ import annotations

from typing import Any, Callable, Dict, List
from unittest.mock import MagicMock

import pytest

from ec2runner.config import RunnerConfig

START_SETTINGS: Dict[str, Any] = {
    "mode": "start",
    "github_token": "ghp_test",
    "github_repository": "octo/widgets",
    "runner_group": "g1",
    "ec2_region": "eu-west-1",
    "ec2_image_id": "ami-123",
    "ec2_instance_type": "t3.medium",
    "subnet_id": "subnet-abc",
    "security_group_id": "sg-abc",
    "iam_role_name": "runner-role",
    "instance_wait_interval": 1.0,
    "instance_wait_attempts": 3,
    "registration_timeout": 30.0,
    "registration_interval": 10.0,
    "registration_quiet_period": 0.0,
}


@pytest.fixture
def make_config() -> Callable[..., RunnerConfig]:
    """Build a start-mode RunnerConfig with overrides."""

    def _make(**overrides: Any) -> RunnerConfig:
        return RunnerConfig(**{**START_SETTINGS, **overrides})

    return _make


@pytest.fixture
def config(make_config) -> RunnerConfig:
    return make_config()


@pytest.fixture
def sleeps() -> List[float]:
    """Collects sleep calls instead of sleeping."""
    return []


@pytest.fixture
def fake_sleep(sleeps: List[float]) -> Callable[[float], None]:
    return sleeps.append


@pytest.fixture
def mock_ec2() -> MagicMock:
    mock = MagicMock()
    mock.describe_instances.return_value = {"Reservations": []}
    mock.run_instances.return_value = {"Instances": [{"InstanceId": "i-new"}]}
    return mock
