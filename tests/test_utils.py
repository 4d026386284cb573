"""Tests for utility functions."""

import pytest

from adjustable_clock.utils import wait_for_start_of_second


class FakeTimer:
    """Time source and sleep function sharing a fake clock."""

    def __init__(self, start: float) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestWaitForStartOfSecond:
    """Tests for wait_for_start_of_second."""

    def test_returns_immediately_at_start(self) -> None:
        """Test no waiting happens right after a boundary."""
        timer = FakeTimer(1000.005)
        fraction = wait_for_start_of_second(time_source=timer.time, sleep=timer.sleep)
        assert fraction == pytest.approx(0.005)
        assert timer.sleeps == []

    def test_waits_for_next_second(self) -> None:
        """Test the remainder of the second is slept away."""
        timer = FakeTimer(1000.25)
        fraction = wait_for_start_of_second(time_source=timer.time, sleep=timer.sleep)
        assert fraction < 0.01
        assert timer.sleeps == [pytest.approx(0.75)]

    def test_custom_threshold(self) -> None:
        """Test a larger threshold accepts later fractions."""
        timer = FakeTimer(1000.3)
        fraction = wait_for_start_of_second(threshold=0.5, time_source=timer.time, sleep=timer.sleep)
        assert fraction == pytest.approx(0.3)

    @pytest.mark.parametrize("threshold", [0, 1, -0.1, 1.5])
    def test_invalid_threshold(self, threshold: float) -> None:
        """Test thresholds outside (0, 1) are rejected."""
        with pytest.raises(ValueError):
            wait_for_start_of_second(threshold=threshold)

    def test_real_clock(self) -> None:
        """Test waiting against the real clock."""
        import time

        fraction = wait_for_start_of_second(threshold=0.05)
        assert fraction < 0.05
        assert time.time() % 1 < 0.5
