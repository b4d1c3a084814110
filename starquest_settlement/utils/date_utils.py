"""Date manipulation utilities"""

import calendar
from datetime import date, datetime, timezone


def last_day_of_month(day: date) -> int:
    """Number of the last calendar day in day's month (28-31)"""
    return calendar.monthrange(day.year, day.month)[1]


def is_last_day_of_month(day: date) -> bool:
    return day.day == last_day_of_month(day)


def utc_today() -> date:
    """Current calendar date in UTC, the scheduler's reference clock"""
    return datetime.now(timezone.utc).date()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
