"""
EC2 compute client — acquire, wait for, and terminate runner instances.

EC2 has no notion of a runner group, so the group lives in a
``runnergroup`` tag. The same tag set is written on create and used as
the describe-instances filter when looking for an instance to reuse,
which keeps short-lived jobs from piling up idle instances.

Nothing here is locked: two concurrent starts for the same group can
both miss the lookup and each create an instance.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..boot_script import build_boot_script, render_boot_script
from ..config import RunnerConfig
from ..errors import (
    ProviderCreateError,
    ProviderLookupError,
    ProviderTerminateError,
    ProviderWaitTimeoutError,
)
from ..models import ComputeInstanceHandle, InstanceOrigin
from ..polling import wait_for

logger = logging.getLogger(__name__)

_AWS_ERRORS = (BotoCoreError, ClientError)


class EC2ComputeClient:
    """Runner instance operations against one EC2 region.

    Args:
        config: Runner configuration.
        ec2: boto3 EC2 client bound to ``config.ec2_region``.
        sleep: Sleep function used between running-state checks.
    """

    def __init__(
        self,
        config: RunnerConfig,
        ec2: Any,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self._ec2 = ec2
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------

    def acquire_instance(self, token: str) -> ComputeInstanceHandle:
        """Reuse a running tagged instance or create a new one.

        Args:
            token: Runner registration token for the boot script.

        Returns:
            Handle whose origin says whether readiness waits are needed.
        """
        if self._config.reuse:
            instance_id = self.find_reusable_instance()
            if instance_id:
                logger.info("AWS EC2 instance %s is already running", instance_id)
                return ComputeInstanceHandle(
                    instance_id=instance_id, origin=InstanceOrigin.REUSED,
                )
            logger.info(
                "No running instance for runner group %s, creating one",
                self._config.runner_group,
            )

        return ComputeInstanceHandle(
            instance_id=self.create_instance(token), origin=InstanceOrigin.CREATED,
        )

    def reuse_filters(self) -> List[Dict[str, Any]]:
        """describe-instances filters: running + every tag in the tag set."""
        filters: List[Dict[str, Any]] = [
            {"Name": "instance-state-name", "Values": ["running"]},
        ]
        filters.extend(tag.to_filter() for tag in self._config.tag_set)
        return filters

    def find_reusable_instance(self) -> Optional[str]:
        """Return the id of a running instance with matching tags, if any.

        Raises:
            ProviderLookupError: If describe-instances fails.
        """
        try:
            result = self._ec2.describe_instances(Filters=self.reuse_filters())
        except _AWS_ERRORS as exc:
            raise ProviderLookupError(str(exc)) from exc

        for reservation in result.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                if instance.get("InstanceId"):
                    return instance["InstanceId"]
        return None

    def create_instance(self, token: str) -> str:
        """Launch one runner instance.

        Args:
            token: Runner registration token embedded in the boot script.

        Returns:
            The new instance id.

        Raises:
            ProviderCreateError: If the launch fails.
        """
        config = self._config
        lines = build_boot_script(token, config.runner_group or "", config)

        run_kwargs: Dict[str, Any] = {
            "ImageId": config.ec2_image_id,
            "InstanceType": config.ec2_instance_type,
            "MinCount": 1,
            "MaxCount": 1,
            # boto3 base64-encodes UserData for RunInstances.
            "UserData": render_boot_script(lines),
            "SubnetId": config.subnet_id,
            "SecurityGroupIds": [config.security_group_id],
            "TagSpecifications": [
                {
                    "ResourceType": "instance",
                    "Tags": [tag.to_aws() for tag in config.tag_set],
                }
            ],
        }
        if config.iam_role_name:
            run_kwargs["IamInstanceProfile"] = {"Name": config.iam_role_name}

        logger.info(
            "Launching EC2 instance (type=%s ami=%s region=%s variant=%s)",
            config.ec2_instance_type, config.ec2_image_id,
            config.ec2_region, config.boot_variant.value,
        )

        try:
            result = self._ec2.run_instances(**run_kwargs)
        except _AWS_ERRORS as exc:
            raise ProviderCreateError(str(exc)) from exc

        instance_id = result["Instances"][0]["InstanceId"]
        logger.info("AWS EC2 instance %s is started", instance_id)
        return instance_id

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    def is_running(self, instance_id: str) -> bool:
        """True when EC2 reports the instance in the ``running`` state.

        Raises:
            ProviderLookupError: If describe-instances fails.
        """
        try:
            desc = self._ec2.describe_instances(InstanceIds=[instance_id])
        except ClientError as exc:
            # A just-launched id may not be visible yet (eventual consistency).
            if exc.response.get("Error", {}).get("Code") == "InvalidInstanceID.NotFound":
                return False
            raise ProviderLookupError(str(exc)) from exc
        except BotoCoreError as exc:
            raise ProviderLookupError(str(exc)) from exc

        for reservation in desc.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                if instance.get("State", {}).get("Name") == "running":
                    return True
        return False

    def wait_until_running(self, instance_id: str) -> None:
        """Block until the instance is running.

        Raises:
            ProviderWaitTimeoutError: If the attempt bound is reached first.
        """
        attempts = self._config.instance_wait_attempts
        wait_for(
            lambda: self.is_running(instance_id),
            interval=self._config.instance_wait_interval,
            max_attempts=attempts,
            on_timeout=lambda: ProviderWaitTimeoutError(instance_id, attempts),
            description=f"EC2 instance {instance_id} running",
            sleep=self._sleep,
        )
        logger.info("AWS EC2 instance %s is up and running", instance_id)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def terminate(self, instance_id: str) -> None:
        """Terminate an instance by id.

        Errors are not special-cased, including for instances that are
        already gone.

        Raises:
            ProviderTerminateError: If terminate-instances fails.
        """
        try:
            self._ec2.terminate_instances(InstanceIds=[instance_id])
        except _AWS_ERRORS as exc:
            raise ProviderTerminateError(str(exc)) from exc
        logger.info("AWS EC2 instance %s is terminated", instance_id)
