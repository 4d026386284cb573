"""Adjustable clock for testable time handling.

Production code asks the clock for "now" instead of reading the system clock,
which lets tests displace time by a fixed offset without sleeping and without
patching ``datetime``.

Example usage:
    # Production code
    from adjustable_clock import get_clock

    def is_expired(expires_at: datetime) -> bool:
        return get_clock().now() >= expires_at

    # Test code
    import pytest
    from adjustable_clock import get_clock

    @pytest.mark.adjustable_clock(zone="UTC")
    def test_token_expires() -> None:
        token_expiry = get_clock().at("+1 hour")
        get_clock().set_offset("+2 hours")
        assert is_expired(token_expiry)

Offsets only take effect while adjustment is allowed, which the pytest plugin
switches on for marked tests and always switches off again afterwards. While
an offset is applied every returned instant has its microseconds truncated
to zero, so instants read in quick succession compare equal at second
precision.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from datetime import tzinfo
from typing import Protocol

from dateutil.relativedelta import relativedelta

from adjustable_clock.exceptions import AdjustmentParseError
from adjustable_clock.exceptions import ParseError
from adjustable_clock.offset import Offset
from adjustable_clock.offset import is_duration_string
from adjustable_clock.parsing import parse_datetime
from adjustable_clock.parsing import parse_format
from adjustable_clock.types import FormatResult
from adjustable_clock.types import ZoneLike
from adjustable_clock.zones import host_zone as discover_host_zone
from adjustable_clock.zones import resolve_zone
from adjustable_clock.zones import zone_name

logger = logging.getLogger(__name__)

# Callable returning the true current time
TimeSource = Callable[[], datetime]

# Anything an instant can be built from
InstantSource = datetime | Offset | relativedelta | timedelta | str

_DURATION_TYPES = (Offset, relativedelta, timedelta)


def _system_time() -> datetime:
    return datetime.now(timezone.utc)


class Clock(Protocol):
    """Protocol for injectable time sources.

    Code that only needs to read time should depend on this protocol, so it
    can be handed either the global ``AdjustableClock`` or any other
    implementation.
    """

    def now(self) -> datetime:
        """Return the current time as a timezone-aware datetime."""
        ...

    def at(self, source: InstantSource, zone: ZoneLike | None = None) -> datetime:
        """Build an instant from a datetime, a duration or an expression."""
        ...

    def from_format(self, fmt: str, text: str, zone: ZoneLike | None = None) -> FormatResult:
        """Parse ``text`` strictly against ``fmt``."""
        ...


class AdjustableClock:
    """Clock whose notion of "now" can be shifted by a whole-second offset.

    Attributes:
        host_zone: Zone the default zone falls back to. Discovered from the
            environment unless set explicitly.
    """

    def __init__(
        self,
        time_source: TimeSource | None = None,
        host_zone: ZoneLike | None = None,
    ) -> None:
        """Initialize the clock in its pristine state.

        Args:
            time_source: Callable returning the true current time. Defaults to
                the system clock in UTC.
            host_zone: Zone used when no default zone is set. Defaults to the
                zone configured for the host environment.
        """
        self._time_source = time_source or _system_time
        self._host_zone: tzinfo | None = resolve_zone(host_zone) if host_zone is not None else None
        self._default_zone: tzinfo | None = None
        self._offset: Offset | None = None
        self._adjustment_allowed = False

    @property
    def host_zone(self) -> tzinfo:
        if self._host_zone is None:
            self._host_zone = discover_host_zone()
        return self._host_zone

    @host_zone.setter
    def host_zone(self, zone: ZoneLike | None) -> None:
        self._host_zone = resolve_zone(zone) if zone is not None else None

    def system_now(self) -> datetime:
        """Return the true current time, ignoring any offset."""
        moment = self._time_source()
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment

    # -------------------------------------------------------------------------
    # Instant construction
    # -------------------------------------------------------------------------

    def now(self) -> datetime:
        """Return the current (possibly adjusted) time in the default zone."""
        return self.at("now")

    def at(self, source: InstantSource, zone: ZoneLike | None = None) -> datetime:
        """Build an instant from a datetime, a duration or an expression.

        Args:
            source: One of:

                - a datetime, whose civil fields are kept and re-tagged with
                  the zone;
                - an ``Offset``, ``relativedelta`` or ``timedelta``, added to
                  the true current time;
                - a string such as ``"2022-08-01"``, ``"+3 weeks"`` or
                  ``"2022-08-01T12:23:34Z"``.
            zone: Zone for the result. Defaults to the default zone. Strings
                carrying their own offset designator keep it unless ``zone``
                is given, in which case they are converted to ``zone``.

        Returns:
            A timezone-aware datetime, displaced by the active offset when
            adjustment is allowed.

        Raises:
            ParseError: If a string source is not a date/time expression.
            TypeError: If ``source`` is of an unsupported type.
        """
        target_zone = resolve_zone(zone) if zone is not None else self.get_default_zone()
        if isinstance(source, datetime):
            moment = self._from_instant(source, target_zone)
        elif isinstance(source, _DURATION_TYPES):
            moment = self._from_duration(source, target_zone)
        elif isinstance(source, str):
            moment = parse_datetime(source, self.system_now(), target_zone, convert=zone is not None)
        else:
            raise TypeError(f"Cannot build an instant from {type(source).__name__}")
        return self._adjust(moment)

    def from_format(self, fmt: str, text: str, zone: ZoneLike | None = None) -> FormatResult:
        """Parse ``text`` strictly against ``fmt``.

        Fields the format leaves out are taken from the true current time,
        unless a letter format resets them with ``!`` or ``|``.

        Args:
            fmt: A strptime format (``"%Y-%m-%d"``) or a PHP-style letter
                format (``"Y-m-d"``, ``"!Y-m-d"``).
            text: The text to parse.
            zone: Zone for the result. Defaults to the default zone.

        Returns:
            The parsed instant, displaced like ``at`` results, or a falsy
            ``ParseFailure`` when ``text`` does not match.
        """
        target_zone = resolve_zone(zone) if zone is not None else self.get_default_zone()
        result = parse_format(fmt, text, self.system_now(), target_zone, convert=zone is not None)
        if isinstance(result, datetime):
            return self._adjust(result)
        return result

    def _from_instant(self, source: datetime, zone: tzinfo) -> datetime:
        return source.replace(tzinfo=zone)

    def _from_duration(self, source: Offset | relativedelta | timedelta, zone: tzinfo) -> datetime:
        return Offset.from_duration(source).apply(self.system_now().astimezone(zone))

    def _adjust(self, moment: datetime) -> datetime:
        if self._adjustment_allowed and self._offset is not None:
            return self._offset.apply(moment).replace(microsecond=0)
        return moment

    # -------------------------------------------------------------------------
    # Zones
    # -------------------------------------------------------------------------

    def get_default_zone(self) -> tzinfo:
        """Return the zone used when a call supplies none."""
        return self._default_zone if self._default_zone is not None else self.host_zone

    def set_default_zone(self, zone: ZoneLike | None = None) -> None:
        """Set the default zone, or reset it to the host zone when None.

        Raises:
            InvalidZoneError: If ``zone`` is an unknown identifier.
        """
        self._default_zone = resolve_zone(zone) if zone is not None else None
        logger.debug("Default zone set to %s", zone_name(self.get_default_zone()))

    # -------------------------------------------------------------------------
    # Offsets
    # -------------------------------------------------------------------------

    def get_offset(self) -> Offset | None:
        """Return the active offset, if any."""
        return self._offset

    def set_offset(self, value: InstantSource | None = None) -> None:
        """Set or clear the offset applied to every instant.

        The stored offset never has a fractional-second component. It is kept
        even while adjustment is disallowed, but only applied once adjustment
        is allowed.

        Args:
            value: One of:

                - None, to clear the offset;
                - a datetime, which the clock's "now" should become;
                - an ``Offset``, ``relativedelta`` or ``timedelta``;
                - an ISO-8601 duration (``"P1DT2H"``, ``"-P5D"``);
                - a date/time expression (``"-5 days"``, ``"2030-01-01"``),
                  converted to the displacement from the current time.

        Raises:
            AdjustmentParseError: If a string is neither a duration nor a
                date/time expression.
            TypeError: If ``value`` is of an unsupported type.
        """
        if value is None:
            offset = None
        elif isinstance(value, datetime):
            offset = self._offset_to(value, self.system_now())
        elif isinstance(value, _DURATION_TYPES):
            offset = Offset.from_duration(value)
        elif isinstance(value, str):
            offset = self._parse_offset(value)
        else:
            raise TypeError(f"Cannot build an offset from {type(value).__name__}")

        self._offset = offset.without_fraction() if offset is not None else None
        if self._offset is None:
            logger.debug("Offset cleared")
        elif self._adjustment_allowed:
            logger.debug("Offset set to %s", self._offset)
        else:
            logger.debug("Offset set to %s while adjustment is disallowed; it stays inert", self._offset)

    def _offset_to(self, target: datetime, reference: datetime) -> Offset:
        if target.tzinfo is None:
            target = target.replace(tzinfo=self.get_default_zone())
        reference = reference.astimezone(target.tzinfo)
        # Adjusted reads are truncated to the second, so difference whole
        # seconds. Compared with the raw difference this moves the reference
        # back one second whenever the two fractions add up to a full second.
        return Offset.between(reference.replace(microsecond=0), target.replace(microsecond=0))

    def _parse_offset(self, value: str) -> Offset:
        error: ParseError | None = None
        if is_duration_string(value):
            try:
                return Offset.parse(value)
            except ParseError as e:
                error = e

        reference = self.system_now()
        try:
            target = parse_datetime(value, reference, self.get_default_zone())
        except ParseError as e:
            error = e
        else:
            return self._offset_to(target, reference)
        raise AdjustmentParseError(value, cause=error) from error

    # -------------------------------------------------------------------------
    # Adjustment gate
    # -------------------------------------------------------------------------

    def is_adjustment_allowed(self) -> bool:
        """Check whether the active offset is applied."""
        return self._adjustment_allowed

    def set_adjustment_allowed(self, enabled: bool) -> bool:
        """Allow or disallow applying the offset.

        IMPORTANT: adjustment is meant for tests only; production code should
        never allow it.

        Returns:
            The previous setting.
        """
        previous = self._adjustment_allowed
        self._adjustment_allowed = enabled
        if previous != enabled:
            logger.debug("Clock adjustment %s", "allowed" if enabled else "disallowed")
        return previous

    def reset(self) -> None:
        """Return to the pristine state: no adjustment, host zone, no offset."""
        self.set_adjustment_allowed(False)
        self.set_default_zone(None)
        self.set_offset(None)


# Default global clock instance
_default_clock: AdjustableClock = AdjustableClock()


def get_clock() -> AdjustableClock:
    """Get the current default clock.

    Returns:
        The currently configured clock instance.
    """
    return _default_clock


def set_clock(clock: AdjustableClock) -> None:
    """Set the default clock (primarily for testing).

    Args:
        clock: Clock instance to use as default.
    """
    global _default_clock
    _default_clock = clock


def reset_clock() -> None:
    """Reset the default clock to a fresh AdjustableClock."""
    global _default_clock
    _default_clock = AdjustableClock()


def now() -> datetime:
    """Return ``get_clock().now()``."""
    return get_clock().now()


def at(source: InstantSource, zone: ZoneLike | None = None) -> datetime:
    """Return ``get_clock().at(source, zone)``."""
    return get_clock().at(source, zone)


def from_format(fmt: str, text: str, zone: ZoneLike | None = None) -> FormatResult:
    """Return ``get_clock().from_format(fmt, text, zone)``."""
    return get_clock().from_format(fmt, text, zone)
