"""Clock abstraction and the human-readable timestamp format used everywhere."""

from datetime import UTC, datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from .config import DEFAULT_TIMEZONE

# en-US style, e.g. "05/18/2024, 03:04:05 PM"
TIMESTAMP_FORMAT = "%m/%d/%Y, %I:%M:%S %p"

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class Clock(Protocol):
    """Source of the current instant."""

    def now(self) -> datetime: ...


class SystemClock:
    """Clock backed by the system wall clock (UTC)."""

    def now(self) -> datetime:
        return datetime.now(UTC)


def format_timestamp(instant: datetime, timezone: str = DEFAULT_TIMEZONE) -> str:
    """Render an instant in a fixed timezone with zero-padded fields.

    Naive datetimes are interpreted as UTC.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(ZoneInfo(timezone)).strftime(TIMESTAMP_FORMAT)


def to_epoch_ms(instant: datetime) -> int:
    """Convert an instant to integer epoch milliseconds."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return (instant - _EPOCH) // timedelta(milliseconds=1)
