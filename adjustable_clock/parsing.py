"""Date/time expression parsing.

Two entry points are provided:

- ``parse_datetime`` understands absolute dates (``"2022-08-01"``,
  ``"2022-08-01T12:23:34Z"``, ``"1 Aug 2022 10:15"``) and relative
  expressions (``"+3 weeks"``, ``"tomorrow noon"``, ``"next monday"``,
  ``"first day of next month"``) and raises ``ParseError`` on anything else.
- ``parse_format`` matches text strictly against a format and returns a
  ``ParseFailure`` on mismatch instead of raising.

Both tag naive results with the zone they are given. Results that carry their
own UTC offset designator keep it, unless ``convert`` is set, in which case
they are converted to the given zone (same instant, different zone).
"""

import logging
import re
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from datetime import tzinfo

from dateutil import parser as date_parser
from dateutil.relativedelta import FR
from dateutil.relativedelta import MO
from dateutil.relativedelta import SA
from dateutil.relativedelta import SU
from dateutil.relativedelta import TH
from dateutil.relativedelta import TU
from dateutil.relativedelta import WE
from dateutil.relativedelta import relativedelta
from dateutil.relativedelta import weekday

from adjustable_clock.exceptions import ParseError
from adjustable_clock.types import FormatResult
from adjustable_clock.types import ParseFailure

logger = logging.getLogger(__name__)

# Relative units mapped to (relativedelta keyword, multiplier)
_UNITS: dict[str, tuple[str, int]] = {
    "sec": ("seconds", 1),
    "secs": ("seconds", 1),
    "second": ("seconds", 1),
    "seconds": ("seconds", 1),
    "min": ("minutes", 1),
    "mins": ("minutes", 1),
    "minute": ("minutes", 1),
    "minutes": ("minutes", 1),
    "hour": ("hours", 1),
    "hours": ("hours", 1),
    "day": ("days", 1),
    "days": ("days", 1),
    "week": ("weeks", 1),
    "weeks": ("weeks", 1),
    "fortnight": ("weeks", 2),
    "fortnights": ("weeks", 2),
    "month": ("months", 1),
    "months": ("months", 1),
    "year": ("years", 1),
    "years": ("years", 1),
}

_WEEKDAYS: dict[str, weekday] = {
    "monday": MO,
    "mon": MO,
    "tuesday": TU,
    "tue": TU,
    "wednesday": WE,
    "wed": WE,
    "thursday": TH,
    "thu": TH,
    "friday": FR,
    "fri": FR,
    "saturday": SA,
    "sat": SA,
    "sunday": SU,
    "sun": SU,
}

_RELATIVE_TOKEN_RE = re.compile(
    r"\s*(?:"
    r"(?P<keyword>now|today|midnight|noon|tomorrow|yesterday)\b"
    r"|(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?\b"
    r"|(?P<day_of>first|last)\s+day\s+of\b"
    r"|(?P<which>next|last|this)\s+(?P<named>[a-z]+)\b"
    r"|(?P<weekday>" + "|".join(sorted(_WEEKDAYS, key=len, reverse=True)) + r")\b"
    r"|(?P<sign>[+-]?)\s*(?P<number>\d+)\s*(?P<unit>[a-z]+)\b"
    r"|(?P<ago>ago)\b"
    r")"
)

_WHICH_STEP = {"next": 1, "last": -1, "this": 0}

# PHP-style format letters mapped to strptime directives
_FORMAT_LETTERS: dict[str, str] = {
    "d": "%d",
    "j": "%d",
    "m": "%m",
    "n": "%m",
    "Y": "%Y",
    "y": "%y",
    "H": "%H",
    "G": "%H",
    "h": "%I",
    "g": "%I",
    "i": "%M",
    "s": "%S",
    "u": "%f",
    "v": "%f",
    "A": "%p",
    "a": "%p",
    "D": "%a",
    "l": "%A",
    "M": "%b",
    "F": "%B",
    "O": "%z",
    "P": "%z",
    "p": "%z",
    "T": "%Z",
    "e": "%Z",
}

# Format characters that reset unparsed fields to the Unix epoch
_RESET_CHARS = frozenset("!|")

_DATE_FIELDS = ("year", "month", "day")
_TIME_FIELDS = ("hour", "minute", "second", "microsecond")

# datetime fields set by each PHP-style format letter
_LETTER_FIELDS: dict[str, tuple[str, ...]] = {
    "d": ("day",),
    "j": ("day",),
    "m": ("month",),
    "n": ("month",),
    "M": ("month",),
    "F": ("month",),
    "Y": ("year",),
    "y": ("year",),
    "H": ("hour",),
    "G": ("hour",),
    "h": ("hour",),
    "g": ("hour",),
    "i": ("minute",),
    "s": ("second",),
    "u": ("microsecond",),
    "v": ("microsecond",),
}

# datetime fields set by each strptime directive
_DIRECTIVE_FIELDS: dict[str, tuple[str, ...]] = {
    "Y": ("year",),
    "y": ("year",),
    "m": ("month",),
    "b": ("month",),
    "B": ("month",),
    "d": ("day",),
    "j": ("month", "day"),
    "H": ("hour",),
    "I": ("hour",),
    "M": ("minute",),
    "S": ("second",),
    "f": ("microsecond",),
    "c": ("year", "month", "day", "hour", "minute", "second"),
    "x": ("year", "month", "day"),
    "X": ("hour", "minute", "second"),
}

_DIRECTIVE_RE = re.compile(r"%(.)")

_EPOCH = datetime(1970, 1, 1)


def _tag(moment: datetime, zone: tzinfo, convert: bool) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=zone)
    offset = moment.utcoffset()
    if offset is not None and not isinstance(moment.tzinfo, timezone):
        moment = moment.replace(tzinfo=timezone(offset))
    return moment.astimezone(zone) if convert else moment


def _parse_relative(text: str, local_now: datetime) -> datetime | None:
    text = text.lower()
    shift: dict[str, int] = {}
    time_of_day: tuple[int, int, int] | None = None
    reset_time = False
    target_weekday: weekday | None = None
    weekday_step = 0
    day_of: str | None = None
    ago = False
    recognized = False

    position = 0
    while position < len(text):
        match = _RELATIVE_TOKEN_RE.match(text, position)
        if match is None:
            return None
        position = match.end()
        if match.group("ago"):
            ago = True
            continue
        recognized = True

        keyword = match.group("keyword")
        if keyword in ("today", "tomorrow", "yesterday"):
            reset_time = True
            if keyword != "today":
                shift["days"] = shift.get("days", 0) + (1 if keyword == "tomorrow" else -1)
        elif keyword == "midnight":
            time_of_day = (0, 0, 0)
        elif keyword == "noon":
            time_of_day = (12, 0, 0)
        elif match.group("hour") is not None:
            hour, minute = int(match.group("hour")), int(match.group("minute"))
            second = int(match.group("second") or 0)
            if hour > 23 or minute > 59 or second > 59:
                return None
            time_of_day = (hour, minute, second)
        elif match.group("day_of"):
            day_of = match.group("day_of")
        elif match.group("which"):
            step = _WHICH_STEP[match.group("which")]
            named = match.group("named")
            if named in _WEEKDAYS:
                reset_time = True
                target_weekday = _WEEKDAYS[named](-1 if step < 0 else 1)
                weekday_step = step
            elif named in _UNITS:
                name, multiplier = _UNITS[named]
                shift[name] = shift.get(name, 0) + step * multiplier
            else:
                return None
        elif match.group("weekday"):
            reset_time = True
            target_weekday = _WEEKDAYS[match.group("weekday")](1)
            weekday_step = 0
        elif match.group("number"):
            unit = _UNITS.get(match.group("unit"))
            if unit is None:
                return None
            name, multiplier = unit
            amount = int(match.group("number")) * multiplier
            if match.group("sign") == "-":
                amount = -amount
            shift[name] = shift.get(name, 0) + amount

    if not recognized:
        return None
    if ago:
        shift = {name: -amount for name, amount in shift.items()}

    result = local_now
    if time_of_day is not None:
        hour, minute, second = time_of_day
        result = result.replace(hour=hour, minute=minute, second=second, microsecond=0)
    elif reset_time:
        result = result.replace(hour=0, minute=0, second=0, microsecond=0)
    result += relativedelta(**shift)
    if target_weekday is not None:
        # "next"/"last" never match the current day
        result += relativedelta(days=weekday_step, weekday=target_weekday)
    if day_of == "first":
        result = result.replace(day=1)
    elif day_of == "last":
        result += relativedelta(day=31)
    return result


def _parse_absolute(text: str, local_now: datetime) -> datetime:
    try:
        return date_parser.isoparse(text)
    except ValueError:
        pass
    default = local_now.replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)
    return date_parser.parse(text, default=default)


def parse_datetime(value: str, now: datetime, zone: tzinfo, convert: bool = False) -> datetime:
    """Parse an absolute or relative date/time expression.

    Relative expressions are made of the following case-insensitive tokens,
    evaluated against ``now`` in ``zone``:

    - ``now``; ``today``, ``tomorrow`` and ``yesterday`` (at midnight);
    - a time of day: ``midnight``, ``noon``, ``HH:MM`` or ``HH:MM:SS``;
    - signed quantities such as ``+3 weeks`` or ``-90 sec`` (seconds through
      years, plus fortnights), negated by a trailing ``ago``;
    - ``next``, ``last`` or ``this`` followed by a unit (``next month``) or
      a weekday (``next monday``, at midnight);
    - a bare weekday (``friday``), meaning today or the next such day;
    - ``first day of`` / ``last day of``, applied after every shift.

    Anything else is handed to dateutil as an absolute date.

    Args:
        value: The expression to parse.
        now: The true current time, used for relative expressions and for
            fields an absolute expression leaves out. Must be timezone-aware.
        zone: Zone for naive results and for interpreting relative
            expressions (so "today" is midnight in ``zone``).
        convert: Convert results carrying their own offset designator into
            ``zone`` instead of keeping the designator.

    Returns:
        A timezone-aware datetime.

    Raises:
        ParseError: If ``value`` is not a recognizable date/time expression.
    """
    text = value.strip()
    local_now = now.astimezone(zone)
    if not text:
        return local_now

    result = _parse_relative(text, local_now)
    if result is not None:
        logger.debug("Parsed %r as a relative expression: %s", value, result)
        return result

    try:
        result = _parse_absolute(text, local_now)
    except (ValueError, OverflowError) as e:
        raise ParseError(value, cause=e) from e
    return _tag(result, zone, convert)


def translate_format(fmt: str) -> str:
    """Translate a PHP-style letter format (``"Y-m-d H:i:s"``) to strptime.

    A backslash makes the following character literal. The reset characters
    ``!`` and ``|`` match no text and are left out. Other characters without a
    format meaning are copied as-is.

    Args:
        fmt: The letter format.

    Returns:
        The equivalent strptime format.

    Raises:
        ValueError: If ``fmt`` uses a letter with no strptime equivalent.
    """
    out: list[str] = []
    chars = iter(fmt)
    for char in chars:
        if char == "\\":
            literal = next(chars, "\\")
            out.append("%%" if literal == "%" else literal)
        elif char in _RESET_CHARS:
            continue
        elif char in _FORMAT_LETTERS:
            out.append(_FORMAT_LETTERS[char])
        elif char.isalpha():
            raise ValueError(f"Unsupported format character {char!r} in {fmt!r}")
        else:
            out.append("%%" if char == "%" else char)
    return "".join(out)


def _letter_format_fields(fmt: str) -> tuple[frozenset[str], bool]:
    fields: set[str] = set()
    reset = False
    chars = iter(fmt)
    for char in chars:
        if char == "\\":
            next(chars, None)
        elif char == "!":
            # Fields parsed before "!" are reset along with the rest
            fields.clear()
            reset = True
        elif char == "|":
            reset = True
        else:
            fields.update(_LETTER_FIELDS.get(char, ()))
    return frozenset(fields), reset


def _directive_fields(fmt: str) -> frozenset[str]:
    fields: set[str] = set()
    for match in _DIRECTIVE_RE.finditer(fmt):
        fields.update(_DIRECTIVE_FIELDS.get(match.group(1), ()))
    return frozenset(fields)


def _fill_missing(parsed: datetime, fields: frozenset[str], base: datetime) -> datetime:
    values = {
        name: getattr(parsed if name in fields else base, name)
        for name in _DATE_FIELDS + _TIME_FIELDS
    }
    if fields.intersection(_TIME_FIELDS):
        values.update({name: 0 for name in _TIME_FIELDS if name not in fields})
    day = values.pop("day")
    # A day past the end of the month rolls over into the next one
    return datetime(day=1, tzinfo=parsed.tzinfo, **values) + timedelta(days=day - 1)


def parse_format(
    fmt: str, text: str, now: datetime, zone: tzinfo, convert: bool = False
) -> FormatResult:
    """Parse ``text`` strictly against ``fmt``.

    Date and time fields the format does not contain are taken from ``now``,
    except that once any time field is parsed the missing time fields are
    zero. In a letter format, ``!`` resets every field to the Unix epoch
    (1970-01-01 00:00:00) before the fields that follow it are parsed, and
    ``|`` resets the fields the format leaves out.

    Args:
        fmt: A strptime format when it contains ``%``, otherwise a PHP-style
            letter format (see ``translate_format``).
        text: The text to parse.
        now: The true current time. Must be timezone-aware.
        zone: Zone for naive results and for reading ``now``.
        convert: Convert results carrying their own offset into ``zone``.

    Returns:
        A timezone-aware datetime, or a ``ParseFailure`` when ``text`` does
        not match ``fmt``.
    """
    if "%" in fmt:
        strptime_format = fmt
        fields, reset = _directive_fields(fmt), False
    else:
        strptime_format = translate_format(fmt)
        fields, reset = _letter_format_fields(fmt)
    try:
        parsed = datetime.strptime(text, strptime_format)
    except ValueError as e:
        logger.debug("Text %r does not match format %r: %s", text, fmt, e)
        return ParseFailure(format=fmt, text=text, reason=str(e))

    if reset:
        base = _EPOCH
    else:
        base = now.astimezone(parsed.tzinfo if parsed.tzinfo is not None else zone)
    return _tag(_fill_missing(parsed, fields, base), zone, convert)
