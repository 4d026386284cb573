"""pytest integration for the adjustable clock.

Registered through the ``pytest11`` entry point, so it is active as soon as
the package is installed. Tests opt into clock adjustment with a marker on
the test function, its class or its module. The closest marker decides
whether adjustment is allowed; the zone comes from the closest marker that
names one:

    @pytest.mark.adjustable_clock(zone="UTC")
    class TestBilling:
        def test_invoice_due(self) -> None:
            get_clock().set_offset("+30 days")
            ...

        @pytest.mark.adjustable_clock(enabled=False)
        def test_uses_real_time(self) -> None:
            ...

Before each test the clock is configured from the marker with an empty
offset; after each test it is reset, whatever the outcome.
"""

import logging
from collections.abc import Generator
from datetime import tzinfo

import pytest

from adjustable_clock.clock import AdjustableClock
from adjustable_clock.clock import get_clock
from adjustable_clock.constants import INI_ZONE_OPTION
from adjustable_clock.constants import MARKER_NAME
from adjustable_clock.exceptions import InvalidZoneError
from adjustable_clock.lifecycle import DISABLED
from adjustable_clock.lifecycle import ClockConfig
from adjustable_clock.lifecycle import ClockLifecycle
from adjustable_clock.lifecycle import TestOutcome
from adjustable_clock.utils import wait_for_start_of_second

logger = logging.getLogger(__name__)

lifecycle_key = pytest.StashKey[ClockLifecycle[pytest.Item]]()
_host_zone_key = pytest.StashKey[tuple[AdjustableClock, tzinfo]]()
_outcome_key = pytest.StashKey[TestOutcome]()


def resolve_item_config(item: pytest.Item) -> ClockConfig:
    """Resolve the clock configuration declared for a test item.

    Each field is resolved separately: ``enabled`` comes from the closest
    ``adjustable_clock`` marker, ``zone`` from the closest marker that sets
    one. A method marker that only disables adjustment therefore keeps the
    zone of its class or module.

    Args:
        item: The collected test item.

    Returns:
        The resolved configuration, or a disabled configuration when the item
        carries no marker.

    Raises:
        InvalidZoneError: If a marker names an unknown zone.
        TypeError: If the marker arguments are invalid.
    """
    configs = [ClockConfig(*marker.args, **marker.kwargs) for marker in item.iter_markers(MARKER_NAME)]
    if not configs:
        return DISABLED
    zone = next((config.zone for config in configs if config.zone is not None), None)
    return ClockConfig(configs[0].enabled, zone)


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addini(
        INI_ZONE_OPTION,
        help="Zone the adjustable clock falls back to instead of the host zone",
        default="",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        f"{MARKER_NAME}(enabled=True, zone=None): allow adjusting the clock during the test, "
        "optionally with a default zone",
    )
    try:
        lifecycle = ClockLifecycle(
            resolve_item_config,
            key=lambda item: item.nodeid,
            host_zone=config.getini(INI_ZONE_OPTION) or None,
        )
    except InvalidZoneError as e:
        raise pytest.UsageError(f"{INI_ZONE_OPTION}: {e}") from e
    config.stash[lifecycle_key] = lifecycle

    # Collection already sees the zone; before_test re-applies it to
    # whichever clock is installed when each test starts.
    if lifecycle.host_zone is not None:
        clock = get_clock()
        config.stash[_host_zone_key] = (clock, clock.host_zone)
        clock.host_zone = lifecycle.host_zone
        logger.debug("Host zone overridden with %s", lifecycle.host_zone)


def pytest_unconfigure(config: pytest.Config) -> None:
    saved = config.stash.get(_host_zone_key, None)
    if saved is not None:
        clock, previous = saved
        clock.host_zone = previous


@pytest.hookimpl(tryfirst=True)
def pytest_runtest_setup(item: pytest.Item) -> None:
    item.config.stash[lifecycle_key].before_test(item)


@pytest.hookimpl(wrapper=True)
def pytest_runtest_makereport(
    item: pytest.Item, call: pytest.CallInfo[None]
) -> Generator[None, pytest.TestReport, pytest.TestReport]:
    report = yield
    if report.when == "setup" and report.failed:
        item.stash[_outcome_key] = TestOutcome.ERRORED
    elif hasattr(report, "wasxfail"):
        item.stash[_outcome_key] = TestOutcome.INCOMPLETE
    elif report.skipped:
        item.stash[_outcome_key] = TestOutcome.SKIPPED
    elif report.when == "call":
        item.stash[_outcome_key] = TestOutcome.PASSED if report.passed else TestOutcome.FAILED
    return report


@pytest.hookimpl(wrapper=True)
def pytest_runtest_teardown(
    item: pytest.Item, nextitem: pytest.Item | None
) -> Generator[None, None, None]:
    try:
        return (yield)
    finally:
        item.config.stash[lifecycle_key].after_test(item, item.stash.get(_outcome_key, None))


@pytest.fixture
def clock() -> AdjustableClock:
    """The process-wide adjustable clock."""
    return get_clock()


@pytest.fixture
def start_of_second() -> float:
    """Wait until a new wall-clock second has just begun."""
    return wait_for_start_of_second()
