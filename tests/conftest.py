"""Shared test fixtures for adjustable_clock tests."""

from datetime import datetime
from datetime import timedelta
from datetime import timezone

import pytest

from adjustable_clock.clock import AdjustableClock

#: Instant every manual time source starts at; deliberately mid-second
REFERENCE_TIME = datetime(2024, 5, 1, 10, 0, 0, 750000, tzinfo=timezone.utc)


class ManualTimeSource:
    """Time source that only moves when told to."""

    def __init__(self, moment: datetime = REFERENCE_TIME) -> None:
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment

    def advance(self, **kwargs: float) -> None:
        self.moment += timedelta(**kwargs)


@pytest.fixture
def time_source() -> ManualTimeSource:
    """A manual time source positioned at REFERENCE_TIME."""
    return ManualTimeSource()


@pytest.fixture
def manual_clock(time_source: ManualTimeSource) -> AdjustableClock:
    """An AdjustableClock driven by the manual time source, hosted in UTC."""
    return AdjustableClock(time_source=time_source, host_zone="UTC")
