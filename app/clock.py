"""
Clock helpers.

Every time-dependent service takes a `clock` callable so workers and
tests can share the same code path with real or virtual time.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    SQLite hands back naive datetimes for timezone-aware columns,
    all stored values are UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = ensure_utc(start) if start else utcnow()

    def __call__(self) -> datetime:
        return self._now

    def advance(self, delta: Optional[timedelta] = None, **kwargs) -> datetime:
        """Move forward by `delta` or by timedelta keyword arguments."""
        self._now = self._now + (delta or timedelta(**kwargs))
        return self._now

    def set(self, value: datetime) -> None:
        self._now = ensure_utc(value)
