"""
Runner lifecycle — the start and stop halves of an ephemeral runner.

start:
  1. Mint a registration token (no retry).
  2. Acquire an instance (reuse a running tagged one, or create).
  3. Publish runner group + instance id as soon as the instance
     exists, so a later stop can clean it up whatever fails next.
  4. For a created instance only: install the idle-termination alarm
     (when auto-termination is on), wait until EC2 reports the
     instance running, then until GitHub reports the runner registered.

stop:
  Terminate the instance, then deregister the runner. Both steps are
  attempted even if the other fails; any failure fails the stop.

A failed start is never rolled back here. Cleanup is left to the
paired stop or to the idle-termination alarm.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

from .config import RunnerConfig
from .github import GitHubRegistrationClient, RegistrationClient
from .models import ExecutionMode, StartOutputs
from .outputs import ActionOutputs
from .providers import (
    EC2ComputeClient,
    IdleTerminationAlarm,
    make_cloudwatch_client,
    make_ec2_client,
)

logger = logging.getLogger(__name__)


@contextmanager
def _step(operation: str, resource: str) -> Iterator[None]:
    """Log a failed external call with its context, then re-raise it."""
    try:
        yield
    except Exception as exc:
        logger.error("%s failed for %s: %s", operation, resource, exc)
        raise


class RunnerLifecycle:
    """Orchestrates one start or stop invocation.

    Args:
        config: Runner configuration.
        compute: EC2 compute client.
        registration: CI registration client.
        publish: Receives the StartOutputs as soon as they are known.
        alarm: Idle-termination alarm installer; only given when
            auto-termination is enabled.
    """

    def __init__(
        self,
        config: RunnerConfig,
        compute: EC2ComputeClient,
        registration: RegistrationClient,
        publish: Callable[[StartOutputs], None],
        alarm: Optional[IdleTerminationAlarm] = None,
    ) -> None:
        self._config = config
        self._compute = compute
        self._registration = registration
        self._publish = publish
        self._alarm = alarm

    def start(self) -> StartOutputs:
        """Bring up a runner for the configured group.

        Returns:
            The published outputs.
        """
        group = self._config.runner_group or ""

        with _step("Registration token request", f"repository {self._config.github_repository}"):
            token = self._registration.get_registration_token()

        with _step("Instance acquisition", f"runner group {group}"):
            handle = self._compute.acquire_instance(token)

        outputs = StartOutputs(runner_group=group, instance_id=handle.instance_id)
        self._publish(outputs)

        if not handle.needs_readiness_wait:
            logger.info(
                "Reusing instance %s for group %s; skipping readiness waits",
                handle.instance_id, group,
            )
            return outputs

        if self._alarm is not None:
            with _step("Idle alarm installation", f"instance {handle.instance_id}"):
                self._alarm.install(handle.instance_id)

        with _step("Wait for instance running", f"instance {handle.instance_id}"):
            self._compute.wait_until_running(handle.instance_id)

        with _step("Wait for runner registration", f"runner group {group}"):
            self._registration.wait_for_runner_registered(
                group, self._config.registration_timeout,
            )

        logger.info(
            "Runner for group %s is ready on instance %s", group, handle.instance_id,
        )
        return outputs

    def stop(
        self,
        instance_id: Optional[str] = None,
        runner_group: Optional[str] = None,
    ) -> List[str]:
        """Terminate the instance and deregister the runner.

        Args:
            instance_id: Defaults to ``config.ec2_instance_id``.
            runner_group: Defaults to ``config.runner_group``.

        Returns:
            Names of the steps that were attempted.

        Raises:
            Exception: The first step failure, after both were attempted.
        """
        instance_id = instance_id or self._config.ec2_instance_id or ""
        runner_group = runner_group or self._config.runner_group or ""

        attempted: List[str] = []
        errors: List[Exception] = []

        attempted.append("terminate")
        try:
            with _step("Instance termination", f"instance {instance_id}"):
                self._compute.terminate(instance_id)
        except Exception as exc:
            errors.append(exc)

        attempted.append("remove_runner")
        try:
            with _step("Runner removal", f"runner group {runner_group}"):
                self._registration.remove_runner(runner_group)
        except Exception as exc:
            errors.append(exc)

        if errors:
            raise errors[0]
        return attempted

    def run(self) -> Optional[StartOutputs]:
        """Run the half of the lifecycle ``config.mode`` selects."""
        if self._config.mode == ExecutionMode.START:
            return self.start()
        self.stop()
        return None


def build_lifecycle(
    config: RunnerConfig,
    publish: Optional[Callable[[StartOutputs], None]] = None,
) -> RunnerLifecycle:
    """Wire real AWS and GitHub clients for ``config``.

    The CloudWatch client is only created when auto-termination is on.
    """
    alarm = None
    if config.auto_termination:
        alarm = IdleTerminationAlarm(config, make_cloudwatch_client(config.ec2_region))

    return RunnerLifecycle(
        config,
        compute=EC2ComputeClient(config, make_ec2_client(config.ec2_region)),
        registration=GitHubRegistrationClient(config),
        publish=publish or ActionOutputs(),
        alarm=alarm,
    )
