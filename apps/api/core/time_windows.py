"""
UTC time helpers shared by the cap ledgers, weekly progress and decay.

Cap and weekly windows are calendar windows in UTC: a day is a UTC date and a
week is the ISO week starting Monday.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite returns them naive)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_start(moment: datetime) -> date:
    return as_utc(moment).date()


def week_start(moment) -> date:
    """Monday of the ISO week containing moment (a date or datetime)."""
    d = day_start(moment) if isinstance(moment, datetime) else moment
    return d - timedelta(days=d.weekday())


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed from earlier to later (floored, never negative)."""
    elapsed = as_utc(later) - as_utc(earlier)
    return max(0, elapsed.days)
