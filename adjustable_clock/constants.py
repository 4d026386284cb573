"""Centralized constants for adjustable_clock.

This module consolidates configuration constants and magic numbers
used across multiple modules to ensure consistency and make tuning easier.
"""

# =============================================================================
# Durations
# =============================================================================

#: Leading designator of an ISO-8601 duration ("P1DT2H")
DURATION_DESIGNATOR: str = "P"

#: Microseconds in one second
MICROSECONDS_PER_SECOND: int = 1_000_000

# =============================================================================
# Zones
# =============================================================================

#: Environment variable holding the host time zone
TZ_ENV_VAR: str = "TZ"

#: System file linking to the host zone in the tz database
LOCALTIME_PATH: str = "/etc/localtime"

#: System file naming the host zone (Debian-style systems)
TIMEZONE_FILE_PATH: str = "/etc/timezone"

#: Path component preceding the zone key in a tz database path
ZONEINFO_MARKER: str = "zoneinfo/"

# =============================================================================
# Test Integration
# =============================================================================

#: Name of the pytest marker configuring the clock for a test
MARKER_NAME: str = "adjustable_clock"

#: Name of the pytest ini option overriding the host zone for a run
INI_ZONE_OPTION: str = "clock_zone"

#: Seconds into the current second still considered its "start"
START_OF_SECOND_THRESHOLD: float = 0.01

#: Seconds to sleep between checks while waiting for the start of a second
START_OF_SECOND_POLL_INTERVAL: float = 0.001
