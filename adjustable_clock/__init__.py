"""adjustable_clock: a process-wide clock that tests can shift in time."""

from importlib.metadata import version

from adjustable_clock.clock import AdjustableClock
from adjustable_clock.clock import Clock
from adjustable_clock.clock import at
from adjustable_clock.clock import from_format
from adjustable_clock.clock import get_clock
from adjustable_clock.clock import now
from adjustable_clock.clock import reset_clock
from adjustable_clock.clock import set_clock
from adjustable_clock.exceptions import AdjustmentParseError
from adjustable_clock.exceptions import ClockError
from adjustable_clock.exceptions import InvalidZoneError
from adjustable_clock.exceptions import ParseError
from adjustable_clock.lifecycle import ClockConfig
from adjustable_clock.lifecycle import ClockLifecycle
from adjustable_clock.lifecycle import TestOutcome
from adjustable_clock.offset import Offset
from adjustable_clock.types import ParseFailure
from adjustable_clock.utils import wait_for_start_of_second
from adjustable_clock.zones import resolve_zone

__version__ = version("adjustable-clock")

__all__ = [
    "AdjustableClock",
    "AdjustmentParseError",
    "Clock",
    "ClockConfig",
    "ClockError",
    "ClockLifecycle",
    "InvalidZoneError",
    "Offset",
    "ParseError",
    "ParseFailure",
    "TestOutcome",
    "at",
    "from_format",
    "get_clock",
    "now",
    "reset_clock",
    "resolve_zone",
    "set_clock",
    "wait_for_start_of_second",
]
