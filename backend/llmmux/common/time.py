"""
Time Utilities

Timestamps are stored in the database as naive UTC and handled as
UTC-aware datetimes everywhere else.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

UTC = timezone.utc


def utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is UTC-aware.

    Naive values are treated as UTC, aware values are converted.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_utc_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert a datetime to naive UTC for database storage/query."""
    aware = ensure_utc(dt)
    if aware is None:
        return None
    return aware.replace(tzinfo=None)


def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """Whether an optional expiry timestamp lies in the past. No expiry never expires."""
    if expires_at is None:
        return False
    return ensure_utc(expires_at) < (now or utc_now())
