"""Date/time helpers shared by the vaccination services.

All datetimes handled by the engine are naive UTC, which is what the
``DateTime`` columns store on both PostgreSQL and SQLite.
"""
import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current naive UTC timestamp"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(moment: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are taken as UTC"""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def days_between(start: datetime, end: datetime) -> int:
    """Whole days elapsed from ``start`` to ``end`` (floored)"""
    return (end - start) // timedelta(days=1)


def add_days(moment: datetime, days: int) -> datetime:
    return moment + timedelta(days=days)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, datetime.min.time())


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, datetime.max.time())


def month_days(year: int, month: int) -> List[date]:
    """Every calendar day of ``month`` (1-12) in ``year``"""
    _, last = calendar.monthrange(year, month)
    return [date(year, month, day) for day in range(1, last + 1)]
