"""Time zone resolution and host zone discovery.

Zones are plain ``tzinfo`` objects: ``zoneinfo.ZoneInfo`` for IANA
identifiers and ``datetime.timezone`` for fixed UTC offsets such as
``"+03:00"``. Every public API of the package that takes a zone also accepts
its string form and resolves it here.
"""

import logging
import os
import re
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from datetime import tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo
from zoneinfo import ZoneInfoNotFoundError

from adjustable_clock.constants import LOCALTIME_PATH
from adjustable_clock.constants import TIMEZONE_FILE_PATH
from adjustable_clock.constants import TZ_ENV_VAR
from adjustable_clock.constants import ZONEINFO_MARKER
from adjustable_clock.exceptions import InvalidZoneError
from adjustable_clock.types import ZoneLike

logger = logging.getLogger(__name__)

_FIXED_OFFSET_RE = re.compile(r"^(?P<sign>[+-])(?P<hours>\d{2}):?(?P<minutes>\d{2})$")


def parse_fixed_offset(value: str) -> timezone | None:
    """Parse a fixed UTC offset designator.

    Args:
        value: Designator such as ``"+03:00"``, ``"-0530"`` or ``"Z"``.

    Returns:
        The matching fixed-offset timezone, or None if ``value`` is not an
        offset designator.
    """
    if value in ("Z", "z"):
        return timezone.utc
    match = _FIXED_OFFSET_RE.match(value)
    if match is None:
        return None
    hours = int(match.group("hours"))
    minutes = int(match.group("minutes"))
    if hours > 23 or minutes > 59:
        return None
    delta = timedelta(hours=hours, minutes=minutes)
    return timezone(-delta if match.group("sign") == "-" else delta)


def resolve_zone(zone: ZoneLike) -> tzinfo:
    """Resolve a zone object or identifier to a tzinfo.

    Args:
        zone: A tzinfo (returned unchanged), an IANA identifier or a fixed
            UTC offset designator.

    Returns:
        The resolved tzinfo.

    Raises:
        InvalidZoneError: If the identifier is not a known zone.
    """
    if isinstance(zone, tzinfo):
        return zone
    if not isinstance(zone, str):
        raise TypeError(f"Expected a tzinfo or zone name, got {type(zone).__name__}")

    name = zone.strip()
    fixed = parse_fixed_offset(name)
    if fixed is not None:
        return fixed
    if not name:
        raise InvalidZoneError(zone)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidZoneError(zone) from e


def zone_name(zone: tzinfo) -> str:
    """Return a display name for a zone.

    Args:
        zone: The zone to name.

    Returns:
        The IANA key for ``ZoneInfo`` zones, otherwise the zone's tzname
        (``"UTC"``, ``"UTC+03:00"``, ...).
    """
    key = getattr(zone, "key", None)
    if key:
        return str(key)
    return zone.tzname(None) or repr(zone)


def _zone_from_name(name: str, source: str) -> tzinfo | None:
    name = name.strip().lstrip(":")
    if not name:
        return None
    try:
        return resolve_zone(name)
    except InvalidZoneError:
        logger.debug("Ignoring unknown zone %r from %s", name, source)
        return None


def _zone_from_localtime(path: Path) -> tzinfo | None:
    if not path.is_symlink():
        return None
    try:
        target = str(path.resolve())
    except OSError as e:
        logger.debug("Could not resolve %s: %s", path, e)
        return None
    _, marker, key = target.rpartition(ZONEINFO_MARKER)
    if not marker:
        return None
    return _zone_from_name(key, str(path))


def _zone_from_file(path: Path) -> tzinfo | None:
    try:
        content = path.read_text()
    except (FileNotFoundError, OSError):
        return None
    return _zone_from_name(content, str(path))


def host_zone() -> tzinfo:
    """Discover the time zone configured for the host environment.

    Sources are tried in order: the ``TZ`` environment variable, the
    ``/etc/localtime`` symlink, ``/etc/timezone``, and finally the fixed UTC
    offset the interpreter reports for local time.

    Returns:
        The host zone.
    """
    zone = _zone_from_name(os.environ.get(TZ_ENV_VAR, ""), f"${TZ_ENV_VAR}")
    if zone is None:
        zone = _zone_from_localtime(Path(LOCALTIME_PATH))
    if zone is None:
        zone = _zone_from_file(Path(TIMEZONE_FILE_PATH))
    if zone is None:
        local = datetime.now().astimezone().tzinfo
        zone = local if local is not None else timezone.utc
    logger.debug("Host zone resolved to %s", zone_name(zone))
    return zone
