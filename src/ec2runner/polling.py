"""Bounded polling shared by the instance-running and runner-registered waits."""

from __future__ import annotations

import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)


def attempts_for(timeout: float, interval: float) -> int:
    """Number of checks that fit in ``timeout`` at ``interval`` spacing (at least one)."""
    return max(1, int(timeout // interval))


def wait_for(
    predicate: Callable[[], bool],
    *,
    interval: float,
    max_attempts: int,
    on_timeout: Callable[[], Exception],
    description: str = "condition",
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Call ``predicate`` until it returns True or attempts run out.

    The predicate is checked at most ``max_attempts`` times with
    ``interval`` seconds between checks. Exceptions raised by the
    predicate propagate immediately; they are not retried.

    Args:
        predicate: Zero-argument check.
        interval: Seconds to sleep between checks.
        max_attempts: Hard bound on the number of checks.
        on_timeout: Builds the exception raised when the bound is hit.
        description: Used in debug logging.
        sleep: Sleep function (injectable for tests).

    Returns:
        The attempt number on which the predicate succeeded.

    Raises:
        Exception: Whatever ``on_timeout`` returns.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        if predicate():
            logger.debug("%s satisfied after %d check(s)", description, attempt)
            return attempt
        logger.debug("Waiting for %s (%d/%d)", description, attempt, max_attempts)
        if attempt < max_attempts:
            sleep(interval)

    raise on_timeout()
