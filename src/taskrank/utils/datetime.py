"""Utilities for datetime handling."""

from datetime import UTC, date, datetime, time


def now_utc() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def to_iso(dt: datetime) -> str:
    """Convert datetime to ISO format string."""
    return dt.isoformat()


def from_iso(value: str | date | None) -> datetime | None:
    """Parse an ISO string, date or datetime into an aware datetime.

    Naive values are assumed to be UTC so that comparisons between stored
    timestamps never mix naive and aware datetimes. A bare date (as YAML
    loads an unquoted ``2030-01-01``) becomes midnight UTC.

    Raises:
        ValueError: If a string is not ISO 8601.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time())
    else:
        # Handle both 'Z' suffix and explicit timezone
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt
