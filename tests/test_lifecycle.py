"""Tests for ClockConfig and ClockLifecycle."""

from datetime import timedelta
from datetime import timezone
from zoneinfo import ZoneInfo

import pytest

from adjustable_clock.clock import AdjustableClock
from adjustable_clock.exceptions import InvalidZoneError
from adjustable_clock.lifecycle import DISABLED
from adjustable_clock.lifecycle import ClockConfig
from adjustable_clock.lifecycle import ClockLifecycle
from adjustable_clock.lifecycle import TestOutcome
from adjustable_clock.offset import Offset
from adjustable_clock.types import ZoneLike


class TestClockConfig:
    """Tests for ClockConfig."""

    def test_defaults(self) -> None:
        """Test a bare declaration enables adjustment with no zone."""
        config = ClockConfig()
        assert config.enabled is True
        assert config.zone is None

    def test_zone_name_resolved(self) -> None:
        """Test zone names are resolved on construction."""
        assert ClockConfig(zone="Europe/Moscow").zone == ZoneInfo("Europe/Moscow")
        assert ClockConfig(zone="+03:00").zone == timezone(timedelta(hours=3))

    def test_invalid_zone_fails_fast(self) -> None:
        """Test an unknown zone is rejected on construction."""
        with pytest.raises(InvalidZoneError):
            ClockConfig(zone="Atlantis/Capital")

    def test_enabled_must_be_bool(self) -> None:
        """Test a non-boolean flag is rejected."""
        with pytest.raises(TypeError):
            ClockConfig(enabled="yes")  # type: ignore[arg-type]

    def test_is_immutable_and_comparable(self) -> None:
        """Test configs compare by value and cannot be changed."""
        assert ClockConfig(False) == DISABLED
        with pytest.raises(AttributeError):
            DISABLED.enabled = True  # type: ignore[misc]


class FlakyClock(AdjustableClock):
    """Clock whose zone reset fails, to exercise the reset guarantees."""

    def set_default_zone(self, zone: ZoneLike | None = None) -> None:
        if zone is None:
            raise RuntimeError("zone reset failed")
        super().set_default_zone(zone)


class TestClockLifecycle:
    """Tests for ClockLifecycle."""

    @pytest.fixture
    def configs(self) -> dict[str, ClockConfig]:
        return {
            "plain": DISABLED,
            "adjustable": ClockConfig(),
            "moscow": ClockConfig(zone="Europe/Moscow"),
        }

    @pytest.fixture
    def lifecycle(
        self, configs: dict[str, ClockConfig], manual_clock: AdjustableClock
    ) -> ClockLifecycle[str]:
        return ClockLifecycle(configs.__getitem__, clock=manual_clock)

    def test_before_test_arms_clock(
        self, lifecycle: ClockLifecycle[str], manual_clock: AdjustableClock
    ) -> None:
        """Test the declared configuration is applied with an empty offset."""
        manual_clock.set_offset("P1D")
        config = lifecycle.before_test("moscow")
        assert config.zone == ZoneInfo("Europe/Moscow")
        assert manual_clock.is_adjustment_allowed()
        assert manual_clock.get_default_zone() == ZoneInfo("Europe/Moscow")
        assert manual_clock.get_offset() is None

    def test_before_test_without_declaration(
        self, lifecycle: ClockLifecycle[str], manual_clock: AdjustableClock
    ) -> None:
        """Test undeclared tests run with adjustment disallowed."""
        manual_clock.set_adjustment_allowed(True)
        lifecycle.before_test("plain")
        assert not manual_clock.is_adjustment_allowed()
        assert manual_clock.get_default_zone() == manual_clock.host_zone

    @pytest.mark.parametrize("outcome", [*TestOutcome, None])
    def test_after_test_resets_for_every_outcome(
        self,
        lifecycle: ClockLifecycle[str],
        manual_clock: AdjustableClock,
        outcome: TestOutcome | None,
    ) -> None:
        """Test the clock is pristine after any outcome."""
        lifecycle.before_test("moscow")
        manual_clock.set_offset("+2 days")
        lifecycle.after_test("moscow", outcome)
        assert not manual_clock.is_adjustment_allowed()
        assert manual_clock.get_default_zone() == manual_clock.host_zone
        assert manual_clock.get_offset() is None

    def test_resolution_is_cached(self, manual_clock: AdjustableClock) -> None:
        """Test the resolver runs once per test identity."""
        calls: list[str] = []

        def resolver(test: str) -> ClockConfig:
            calls.append(test)
            return ClockConfig()

        lifecycle = ClockLifecycle(resolver, clock=manual_clock)
        for _ in range(3):
            lifecycle.before_test("a")
            lifecycle.after_test("a")
        lifecycle.before_test("b")
        assert calls == ["a", "b"]

    def test_custom_key(self, manual_clock: AdjustableClock) -> None:
        """Test tests sharing a key share a cached configuration."""
        calls: list[tuple[str, str]] = []

        def resolver(test: tuple[str, str]) -> ClockConfig:
            calls.append(test)
            return ClockConfig()

        lifecycle = ClockLifecycle(resolver, key=lambda test: test[0], clock=manual_clock)
        lifecycle.resolve(("TestA::test_one", "first"))
        lifecycle.resolve(("TestA::test_one", "second"))
        assert calls == [("TestA::test_one", "first")]

    def test_resolver_errors_propagate(self, manual_clock: AdjustableClock) -> None:
        """Test a misconfigured test fails at setup."""

        def resolver(test: str) -> ClockConfig:
            return ClockConfig(zone="Atlantis/Capital")

        lifecycle = ClockLifecycle(resolver, clock=manual_clock)
        with pytest.raises(InvalidZoneError):
            lifecycle.before_test("broken")

    def test_reset_steps_all_run_when_one_fails(self) -> None:
        """Test a failing reset step does not skip the others."""
        clock = FlakyClock(host_zone="UTC")
        lifecycle = ClockLifecycle(lambda test: ClockConfig(zone="Europe/Moscow"), clock=clock)
        lifecycle.before_test("t")
        clock.set_offset("P1D")
        with pytest.raises(RuntimeError, match="zone reset failed"):
            lifecycle.after_test("t", TestOutcome.FAILED)
        assert not clock.is_adjustment_allowed()
        assert clock.get_offset() is None

    def test_running_resets_on_error(self, manual_clock: AdjustableClock) -> None:
        """Test the context manager resets even when the body raises."""
        lifecycle = ClockLifecycle(lambda test: ClockConfig(), clock=manual_clock)
        with pytest.raises(ZeroDivisionError):
            with lifecycle.running("t"):
                manual_clock.set_offset("P1D")
                assert manual_clock.get_offset() == Offset(days=1)
                1 / 0
        assert not manual_clock.is_adjustment_allowed()
        assert manual_clock.get_offset() is None

    def test_defaults_to_global_clock(self) -> None:
        """Test the global clock is configured when none is injected."""
        from adjustable_clock.clock import get_clock

        lifecycle = ClockLifecycle(lambda test: ClockConfig())
        assert lifecycle.clock is get_clock()

    def test_host_zone_applied_before_each_test(self, manual_clock: AdjustableClock) -> None:
        """Test an imposed host zone is set on the clock before every test."""
        lifecycle = ClockLifecycle(lambda test: DISABLED, clock=manual_clock, host_zone="Asia/Tokyo")
        manual_clock.host_zone = "UTC"
        lifecycle.before_test("t")
        assert manual_clock.host_zone == ZoneInfo("Asia/Tokyo")
        assert manual_clock.get_default_zone() == ZoneInfo("Asia/Tokyo")
        lifecycle.after_test("t")
        assert manual_clock.get_default_zone() == ZoneInfo("Asia/Tokyo")

    def test_host_zone_follows_replaced_clock(self) -> None:
        """Test the imposed host zone reaches a clock installed after construction."""
        from adjustable_clock.clock import get_clock
        from adjustable_clock.clock import set_clock

        previous = get_clock()
        replacement = AdjustableClock(host_zone="UTC")
        lifecycle = ClockLifecycle(lambda test: DISABLED, host_zone="Asia/Tokyo")
        set_clock(replacement)
        try:
            lifecycle.before_test("t")
            assert replacement.host_zone == ZoneInfo("Asia/Tokyo")
        finally:
            lifecycle.after_test("t")
            set_clock(previous)

    def test_invalid_host_zone_fails_fast(self) -> None:
        """Test an unknown host zone is rejected on construction."""
        with pytest.raises(InvalidZoneError):
            ClockLifecycle(lambda test: DISABLED, host_zone="Nowhere/Special")
