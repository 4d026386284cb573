"""Type aliases and small value types shared across adjustable_clock."""

from dataclasses import dataclass
from datetime import datetime
from datetime import timedelta
from datetime import tzinfo

from dateutil.relativedelta import relativedelta

# Anything accepted where a zone is expected: a tzinfo, or a name such as
# "Europe/Paris", "UTC" or "+03:00".
ZoneLike = tzinfo | str


@dataclass(frozen=True)
class ParseFailure:
    """Result of a strict format parse that did not match.

    Instances are falsy, so callers can write ``if not result:``.

    Attributes:
        format: The format the text was matched against.
        text: The text that did not match.
        reason: Human-readable description of the mismatch.
    """

    format: str
    text: str
    reason: str

    def __bool__(self) -> bool:
        return False


# Durations accepted wherever an offset is expected.
DurationLike = relativedelta | timedelta

# Result of a strict format parse.
FormatResult = datetime | ParseFailure
