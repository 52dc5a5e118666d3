"""Exception taxonomy for runner lifecycle failures.

Nothing here is retried internally. Each error is logged with the
instance or runner group it concerns and then propagated, so the
whole invocation fails with the underlying message.
"""

from __future__ import annotations

from typing import Optional


class Ec2RunnerError(Exception):
    """Base class for every ec2runner failure."""


class ConfigError(Ec2RunnerError):
    """Raised when action inputs or the config file are invalid."""


# ---------------------------------------------------------------------------
# Compute provider (EC2 / CloudWatch)
# ---------------------------------------------------------------------------


class ProviderError(Ec2RunnerError):
    """Base class for compute provider failures."""


class ProviderLookupError(ProviderError):
    """Raised when searching for a reusable instance fails."""


class ProviderCreateError(ProviderError):
    """Raised when launching an instance (or its idle alarm) fails.

    ``instance_id`` is set when the instance itself already exists,
    i.e. only a follow-up resource such as the alarm failed.
    """

    def __init__(self, message: str, instance_id: Optional[str] = None) -> None:
        self.instance_id = instance_id
        super().__init__(message)


class ProviderWaitTimeoutError(ProviderError):
    """Raised when an instance does not reach the running state in time."""

    def __init__(self, instance_id: str, attempts: int) -> None:
        self.instance_id = instance_id
        self.attempts = attempts
        super().__init__(
            f"EC2 instance {instance_id} did not reach the running state "
            f"after {attempts} checks"
        )


class ProviderTerminateError(ProviderError):
    """Raised when terminating an instance fails."""


# ---------------------------------------------------------------------------
# CI registration (GitHub)
# ---------------------------------------------------------------------------


class RegistrationError(Ec2RunnerError):
    """Base class for CI coordinator failures."""


class RegistrationTokenError(RegistrationError):
    """Raised when a runner registration token cannot be obtained."""


class RunnerRegistrationTimeoutError(RegistrationError):
    """Raised when the runner never shows up online for its group."""

    def __init__(self, runner_group: str, timeout: float) -> None:
        self.runner_group = runner_group
        self.timeout = timeout
        super().__init__(
            f"Runner for group {runner_group} was not registered "
            f"within {timeout:g}s"
        )


class RunnerRemovalError(RegistrationError):
    """Raised when deregistering a runner fails."""
