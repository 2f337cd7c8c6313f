"""
Time helpers.

All database timestamps are timezone-aware (UTC). Use these helpers instead of
`datetime.utcnow()` to avoid mixing naive and aware datetimes.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def now_utc() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """
    Coerce a datetime to timezone-aware UTC.

    SQLite hands back naive datetimes; treat those as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def days_ago(days: int) -> datetime:
    """Return the UTC instant `days` whole days before now."""
    if not isinstance(days, int) or isinstance(days, bool):
        raise ValueError("days must be an integer")
    if days < 0:
        raise ValueError("days cannot be negative")
    return now_utc() - timedelta(days=days)


def epoch_ms(dt: datetime | None = None) -> int:
    """Milliseconds since the epoch for `dt` (default: now)."""
    return int((ensure_utc(dt) or now_utc()).timestamp() * 1000)


def from_epoch_ms(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
