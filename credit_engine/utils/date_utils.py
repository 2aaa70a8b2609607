"""Date manipulation utilities"""

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Tuple


def subtract_months(from_date: date, months: int) -> date:
    """Same day N months earlier, clamped to the end of shorter months"""
    month_index = from_date.year * 12 + from_date.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(from_date.day, calendar.monthrange(year, month)[1])
    return from_date.replace(year=year, month=month, day=day)


def whole_months_between(start: date, current: date) -> int:
    """Completed calendar months from start to current"""
    months = (current.year - start.year) * 12 + current.month - start.month
    if current.day < start.day:
        months -= 1
    return months


def assessment_window(months: int, end: Optional[date] = None) -> Tuple[date, date]:
    """
    (start, end) covering N calendar months up to end, today by default.

    The window starts on the first of a month so the oldest month is never
    a partial one; only the current month can be.
    """
    end = end or date.today()
    return subtract_months(end.replace(day=1), max(months - 1, 0)), end


def days_ago(days: int, now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now - timedelta(days=days)
