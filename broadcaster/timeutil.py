"""
UTC time helpers.

Timestamps are persisted as naive UTC so that values read back from
SQLite compare cleanly with freshly computed ones.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware or naive datetime to naive UTC (naive input is assumed UTC)."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def isoformat(value):
    """ISO-8601 with an explicit UTC offset, or None."""
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc).isoformat()
