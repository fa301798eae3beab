"""
Time helpers.

All timestamps are handled as timezone-aware UTC. SQLite hands back
naive datetimes for ``DateTime(timezone=True)`` columns, so values read
from the database pass through ``as_utc`` before comparison.
"""

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes and convert aware ones."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    raise TypeError(f"Unsupported datetime value: {value!r}")


def day_key(value: datetime) -> str:
    """YYYY-MM-DD of a timestamp in UTC."""
    return as_utc(value).date().isoformat()
