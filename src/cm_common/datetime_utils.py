"""UTC datetime utilities."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def days_from(start: datetime, days: int) -> datetime:
    """Return start shifted forward by whole days."""
    return start + timedelta(days=days)
