"""
Pydantic models for the runner lifecycle.

The start and stop invocations never share memory. Everything they
exchange is carried by StartOutputs, which the workflow passes from
one step to the next.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

# Tag key every managed instance carries; also the reuse lookup key.
RUNNER_GROUP_TAG = "runnergroup"


class ExecutionMode(str, Enum):
    """Which half of the lifecycle an invocation runs."""

    START = "start"
    STOP = "stop"


class InstanceOrigin(str, Enum):
    """How an instance was acquired."""

    REUSED = "reused"
    CREATED = "created"


class BootVariant(str, Enum):
    """Boot script strategy."""

    PREBAKED = "prebaked"
    FRESH_INSTALL = "fresh_install"


class Tag(BaseModel):
    """A single EC2 tag."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str = Field(alias="Key", min_length=1)
    value: str = Field(alias="Value")

    def to_aws(self) -> Dict[str, str]:
        return {"Key": self.key, "Value": self.value}

    def to_filter(self) -> Dict[str, object]:
        return {"Name": f"tag:{self.key}", "Values": [self.value]}


def build_tag_set(runner_group: str, extra_tags: Sequence[Tag] = ()) -> Tuple[Tag, ...]:
    """Return the ordered tag set for a runner group.

    The runnergroup tag always comes first. An extra tag reusing the
    runnergroup key is dropped so the group cannot be overridden.

    Args:
        runner_group: Target runner group.
        extra_tags: Operator-supplied tags, in order.

    Returns:
        Tuple of tags.
    """
    tags: List[Tag] = [Tag(key=RUNNER_GROUP_TAG, value=runner_group)]
    tags.extend(t for t in extra_tags if t.key != RUNNER_GROUP_TAG)
    return tuple(tags)


class ComputeInstanceHandle(BaseModel):
    """An acquired EC2 instance."""

    model_config = ConfigDict(frozen=True)

    instance_id: str
    origin: InstanceOrigin

    @property
    def needs_readiness_wait(self) -> bool:
        """Reused instances are assumed to be live already."""
        return self.origin == InstanceOrigin.CREATED


class AlarmSpec(BaseModel):
    """CloudWatch alarm that terminates an idle instance."""

    model_config = ConfigDict(frozen=True)

    name: str
    instance_id: str
    region: str
    threshold: float = 1.0
    evaluation_periods: int = Field(ge=1)
    period_seconds: int = 60

    @property
    def terminate_action_arn(self) -> str:
        return f"arn:aws:automate:{self.region}:ec2:terminate"


class StartOutputs(BaseModel):
    """Values published by start() for the paired stop()."""

    model_config = ConfigDict(frozen=True)

    runner_group: str
    instance_id: str

    def as_action_outputs(self) -> Dict[str, str]:
        """Output names as the workflow sees them."""
        return {
            "runner-group": self.runner_group,
            "ec2-instance-id": self.instance_id,
        }
