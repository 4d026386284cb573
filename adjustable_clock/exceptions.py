"""Application-specific exceptions for adjustable_clock.

Exception Hierarchy:
    ClockError (base)
    ├── ParseError
    │   └── AdjustmentParseError
    └── InvalidZoneError

``ParseError`` and ``InvalidZoneError`` also derive from ``ValueError`` so
callers that already guard date handling with ``except ValueError`` keep
working.
"""


class ClockError(Exception):
    """Base exception for all adjustable_clock errors."""


class ParseError(ClockError, ValueError):
    """Raised when a date/time expression cannot be interpreted.

    Attributes:
        value: The string that could not be parsed.
        message: Human-readable error description.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        value: str,
        message: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.value = value
        self.cause = cause
        self.message = message or f"Failed to parse date/time string {value!r}"
        if cause:
            self.message = f"{self.message}: {cause}"
        super().__init__(self.message)


class AdjustmentParseError(ParseError):
    """Raised when a time shift given to ``set_offset`` cannot be interpreted.

    Attributes:
        value: The time shift that could not be parsed.
        message: Human-readable error description.
        cause: The underlying parse error, if either parse attempt raised one.
    """

    def __init__(
        self,
        value: str,
        message: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(value, message or f"Unrecognized time shift {value!r}", cause)


class InvalidZoneError(ClockError, ValueError):
    """Raised when a time zone identifier is unknown.

    Attributes:
        zone: The zone identifier that was rejected.
        message: Human-readable error description.
    """

    def __init__(self, zone: str, message: str | None = None) -> None:
        self.zone = zone
        self.message = message or f"Invalid timezone: {zone}"
        super().__init__(self.message)
