"""CloudWatch alarm that terminates a runner instance once it goes idle.

Safety net for instances that are created but never explicitly stopped:
when average CPU stays below 1% for the configured number of one-minute
periods, CloudWatch's own EC2 terminate action kills the instance.
"""

from __future__ import annotations

import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from ..config import RunnerConfig
from ..errors import ProviderCreateError
from ..models import AlarmSpec

logger = logging.getLogger(__name__)


def alarm_name(instance_id: str) -> str:
    """Deterministic alarm name; re-installing overwrites the same alarm."""
    return f"Terminate-{instance_id}"


class IdleTerminationAlarm:
    """Installs the idle-termination alarm for new instances.

    Args:
        config: Runner configuration (region and termination delay).
        cloudwatch: boto3 CloudWatch client.
    """

    def __init__(self, config: RunnerConfig, cloudwatch: Any) -> None:
        self._config = config
        self._cloudwatch = cloudwatch

    def alarm_spec(self, instance_id: str) -> AlarmSpec:
        return AlarmSpec(
            name=alarm_name(instance_id),
            instance_id=instance_id,
            region=self._config.ec2_region,
            evaluation_periods=self._config.termination_delay,
        )

    def install(self, instance_id: str) -> AlarmSpec:
        """Create or overwrite the alarm for ``instance_id``.

        Args:
            instance_id: EC2 instance to watch.

        Returns:
            The installed AlarmSpec.

        Raises:
            ProviderCreateError: If CloudWatch rejects the alarm.
        """
        spec = self.alarm_spec(instance_id)
        try:
            self._cloudwatch.put_metric_alarm(
                AlarmName=spec.name,
                AlarmDescription=(
                    f"Terminate instance {instance_id} when CPU utilization "
                    f"is less than {spec.threshold:g}%"
                ),
                ComparisonOperator="LessThanThreshold",
                EvaluationPeriods=spec.evaluation_periods,
                MetricName="CPUUtilization",
                Namespace="AWS/EC2",
                Period=spec.period_seconds,
                Statistic="Average",
                Threshold=spec.threshold,
                ActionsEnabled=True,
                Dimensions=[{"Name": "InstanceId", "Value": instance_id}],
                AlarmActions=[spec.terminate_action_arn],
                Unit="Percent",
            )
        except (BotoCoreError, ClientError) as exc:
            raise ProviderCreateError(
                f"Idle alarm for EC2 instance {instance_id}: {exc}",
                instance_id=instance_id,
            ) from exc

        logger.info("CloudWatch alarm %s is created", spec.name)
        return spec
