"""Shared utility functions for adjustable_clock."""

import logging
import time
from collections.abc import Callable

from adjustable_clock.constants import START_OF_SECOND_POLL_INTERVAL
from adjustable_clock.constants import START_OF_SECOND_THRESHOLD

logger = logging.getLogger(__name__)


def wait_for_start_of_second(
    threshold: float = START_OF_SECOND_THRESHOLD,
    poll_interval: float = START_OF_SECOND_POLL_INTERVAL,
    time_source: Callable[[], float] = time.time,
    sleep: Callable[[float], None] = time.sleep,
) -> float:
    """Block until the current wall-clock second has only just begun.

    Tests that compare instants at second precision against the real clock
    can fail when a second boundary is crossed between two reads. Starting
    such tests right after a boundary leaves almost a full second for them.

    Args:
        threshold: Seconds into the current second still considered its start.
        poll_interval: Minimum time to sleep between checks.
        time_source: Callable returning the current Unix timestamp.
        sleep: Callable used to wait.

    Returns:
        The fraction of the second that had elapsed when waiting ended.

    Raises:
        ValueError: If ``threshold`` is not strictly between 0 and 1.
    """
    if not 0 < threshold < 1:
        raise ValueError(f"threshold must be between 0 and 1, got {threshold}")
    while True:
        fraction = time_source() % 1
        if fraction < threshold:
            return fraction
        remaining = 1.0 - fraction
        logger.debug("Waiting %.4fs for the start of the next second", remaining)
        sleep(max(remaining, poll_interval))
