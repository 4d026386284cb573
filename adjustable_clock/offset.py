"""Signed, zone-independent time shifts.

An ``Offset`` mirrors an ISO-8601 duration: non-negative calendar and clock
components plus an ``invert`` flag pointing into the past. Year and month
components are applied with calendar arithmetic through
``dateutil.relativedelta``, so ``P1M`` added to January 31st lands on the last
day of February rather than a fixed number of days later.

Example:
    offset = Offset.parse("P1DT2H3M4S")
    later = offset.apply(datetime(2022, 8, 1, tzinfo=timezone.utc))

    past = Offset(days=5, invert=True)
    assert str(past) == "-P5D"
    assert past.isoformat() == "P5D"
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from dataclasses import fields
from dataclasses import replace
from datetime import datetime
from datetime import timedelta

from dateutil.relativedelta import relativedelta

from adjustable_clock.constants import DURATION_DESIGNATOR
from adjustable_clock.constants import MICROSECONDS_PER_SECOND
from adjustable_clock.exceptions import ParseError
from adjustable_clock.types import DurationLike

_DURATION_RE = re.compile(
    r"^(?P<sign>[+-])?P(?!$)"
    r"(?:(?P<years>\d+)Y)?"
    r"(?:(?P<months>\d+)M)?"
    r"(?:(?P<weeks>\d+)W)?"
    r"(?:(?P<days>\d+)D)?"
    r"(?:T(?=\d)"
    r"(?:(?P<hours>\d+)H)?"
    r"(?:(?P<minutes>\d+)M)?"
    r"(?:(?P<seconds>\d+)(?:[.,](?P<fraction>\d+))?S)?"
    r")?$"
)

_RELATIVEDELTA_ABSOLUTE_FIELDS = (
    "year",
    "month",
    "day",
    "weekday",
    "hour",
    "minute",
    "second",
    "microsecond",
)


def is_duration_string(value: str) -> bool:
    """Check whether a string starts with the ISO-8601 duration designator.

    A leading sign is allowed, so ``"P5D"`` and ``"-P5D"`` both qualify.
    """
    return value.strip().lstrip("+-").startswith(DURATION_DESIGNATOR)


@dataclass(frozen=True)
class Offset:
    """A signed displacement made of calendar and clock components.

    Attributes:
        years: Whole years.
        months: Whole months.
        days: Whole days (ISO weeks are folded into days).
        hours: Whole hours.
        minutes: Whole minutes.
        seconds: Whole seconds.
        microseconds: Fractional second, in microseconds.
        invert: True when the offset points into the past.
    """

    years: int = 0
    months: int = 0
    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0
    microseconds: int = 0
    invert: bool = False

    def __post_init__(self) -> None:
        for f in fields(self):
            if f.name == "invert":
                continue
            value = getattr(self, f.name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"Offset.{f.name} must be a non-negative integer, got {value!r}")
        if self.microseconds >= MICROSECONDS_PER_SECOND:
            raise ValueError(f"Offset.microseconds must be below one second, got {self.microseconds}")

    @classmethod
    def parse(cls, value: str) -> Offset:
        """Parse an ISO-8601 duration such as ``"P1DT2H3M4S"`` or ``"-P5D"``.

        Args:
            value: The duration string. A leading ``-`` produces an inverted
                offset. Weeks may be combined with other components.

        Returns:
            The parsed offset.

        Raises:
            ParseError: If ``value`` is not a valid ISO-8601 duration.
        """
        match = _DURATION_RE.match(value.strip())
        if match is None:
            raise ParseError(value, f"Invalid ISO-8601 duration {value!r}")

        def part(name: str) -> int:
            group = match.group(name)
            return int(group) if group else 0

        fraction = match.group("fraction") or ""
        return cls(
            years=part("years"),
            months=part("months"),
            days=part("weeks") * 7 + part("days"),
            hours=part("hours"),
            minutes=part("minutes"),
            seconds=part("seconds"),
            microseconds=int(fraction[:6].ljust(6, "0")) if fraction else 0,
            invert=match.group("sign") == "-",
        )

    @classmethod
    def from_duration(cls, duration: Offset | DurationLike) -> Offset:
        """Convert a ``timedelta`` or relative ``relativedelta`` to an Offset.

        Args:
            duration: The duration to convert. Offsets are returned unchanged.

        Returns:
            The equivalent offset.

        Raises:
            ValueError: If a relativedelta carries absolute fields (``year=``,
                ``weekday=``, ...) or mixes positive and negative components.
        """
        if isinstance(duration, Offset):
            return duration
        if isinstance(duration, timedelta):
            magnitude = abs(duration)
            hours, remainder = divmod(magnitude.seconds, 3600)
            minutes, seconds = divmod(remainder, 60)
            return cls(
                days=magnitude.days,
                hours=hours,
                minutes=minutes,
                seconds=seconds,
                microseconds=magnitude.microseconds,
                invert=duration < timedelta(0),
            )
        if isinstance(duration, relativedelta):
            for name in _RELATIVEDELTA_ABSOLUTE_FIELDS:
                if getattr(duration, name) is not None:
                    raise ValueError(f"Cannot convert relativedelta with absolute field {name!r}")
            normalized = duration.normalized()
            parts = {
                "years": normalized.years,
                "months": normalized.months,
                "days": normalized.days,
                "hours": normalized.hours,
                "minutes": normalized.minutes,
                "seconds": normalized.seconds,
                "microseconds": normalized.microseconds,
            }
            if any(v > 0 for v in parts.values()) and any(v < 0 for v in parts.values()):
                raise ValueError(f"Cannot convert mixed-sign relativedelta {duration!r}")
            invert = any(v < 0 for v in parts.values())
            return cls(**{k: abs(int(v)) for k, v in parts.items()}, invert=invert)
        raise TypeError(f"Expected a duration, got {type(duration).__name__}")

    @classmethod
    def between(cls, start: datetime, end: datetime) -> Offset:
        """Compute the offset that takes ``start`` to ``end``.

        Calendar components are measured in the zone of ``start``, and
        ``Offset.between(start, end).apply(start) == end`` always holds.

        Args:
            start: The reference instant.
            end: The target instant.

        Returns:
            The offset, inverted when ``end`` lies before ``start``.
        """
        if start.tzinfo is not None and end.tzinfo is not None:
            end = end.astimezone(start.tzinfo)
        delta = relativedelta(end, start)
        if end < start and delta.microseconds > 0:
            # relativedelta keeps the fraction positive even for negative deltas
            delta = relativedelta(
                years=delta.years,
                months=delta.months,
                days=delta.days,
                hours=delta.hours,
                minutes=delta.minutes,
                seconds=delta.seconds + 1,
                microseconds=delta.microseconds - MICROSECONDS_PER_SECOND,
            )
        return cls.from_duration(delta)

    @property
    def is_zero(self) -> bool:
        """True when every component is zero."""
        return self.as_relativedelta() == relativedelta()

    def without_fraction(self) -> Offset:
        """Return a copy with the fractional-second component dropped."""
        if not self.microseconds:
            return self
        return replace(self, microseconds=0)

    def as_relativedelta(self) -> relativedelta:
        """Return the signed relativedelta equivalent of this offset."""
        sign = -1 if self.invert else 1
        return relativedelta(
            years=sign * self.years,
            months=sign * self.months,
            days=sign * self.days,
            hours=sign * self.hours,
            minutes=sign * self.minutes,
            seconds=sign * self.seconds,
            microseconds=sign * self.microseconds,
        )

    def apply(self, moment: datetime) -> datetime:
        """Displace ``moment`` by this offset."""
        return moment + self.as_relativedelta()

    def isoformat(self) -> str:
        """Format the unsigned magnitude as an ISO-8601 duration (``"P5D"``)."""
        date_part = "".join(
            f"{value}{unit}"
            for value, unit in ((self.years, "Y"), (self.months, "M"), (self.days, "D"))
            if value
        )
        if self.microseconds:
            fraction = f"{self.microseconds:06d}".rstrip("0")
            seconds = f"{self.seconds}.{fraction}S"
        else:
            seconds = f"{self.seconds}S" if self.seconds else ""
        time_part = "".join(
            f"{value}{unit}" for value, unit in ((self.hours, "H"), (self.minutes, "M")) if value
        )
        time_part += seconds
        if not date_part and not time_part:
            return "PT0S"
        return f"P{date_part}" + (f"T{time_part}" if time_part else "")

    def __str__(self) -> str:
        return f"-{self.isoformat()}" if self.invert else self.isoformat()
