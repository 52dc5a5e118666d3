"""
AWS providers — the EC2 compute client and the CloudWatch idle alarm.

Client handles are created here, bound to one region, and injected into
the components that need them. The CloudWatch client is only created
when auto-termination is enabled.
"""

from __future__ import annotations

from typing import Any

import boto3

from .alarms import IdleTerminationAlarm
from .ec2 import EC2ComputeClient


def make_ec2_client(region: str) -> Any:
    """Create a boto3 EC2 client for ``region``."""
    return boto3.client("ec2", region_name=region)


def make_cloudwatch_client(region: str) -> Any:
    """Create a boto3 CloudWatch client for ``region``."""
    return boto3.client("cloudwatch", region_name=region)


__all__ = [
    "EC2ComputeClient",
    "IdleTerminationAlarm",
    "make_cloudwatch_client",
    "make_ec2_client",
]
