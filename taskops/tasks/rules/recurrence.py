"""
Reminder recurrence — next occurrence for a recurrence pattern.

Pattern shape (``reminders.recurrence_pattern``)::

    {"type": "daily" | "weekly" | "monthly" | "yearly",
     "interval": 1,              # optional, >= 1
     "days_of_week": [1, 3, 5],  # weekly only, 1=Monday .. 7=Sunday
     "day_of_month": 31,         # monthly only, clamped to month length
     "end_date": "2026-12-31"}   # optional, inclusive
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional

from taskops.tasks.constants import RecurrenceType


def _add_months(value: datetime, months: int, day: Optional[int] = None) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(day or value.day, last_day))


def _next_weekly(current: datetime, interval: int, days_of_week) -> datetime:
    if not days_of_week:
        return current + timedelta(weeks=interval)

    weekday = current.isoweekday()
    days = sorted(int(d) for d in days_of_week)
    later = [d for d in days if d > weekday]
    if later:
        return current + timedelta(days=later[0] - weekday)
    # First listed day of the following week, then skip (interval - 1) weeks
    return current + timedelta(days=7 - weekday + days[0] + (interval - 1) * 7)


def next_occurrence(current: datetime, pattern: Dict[str, Any]) -> Optional[datetime]:
    """
    Compute the occurrence after ``current``.

    Returns None when the pattern's end_date has passed or the type is unknown.
    """
    try:
        kind = RecurrenceType(pattern.get("type"))
    except ValueError:
        return None
    interval = max(int(pattern.get("interval") or 1), 1)

    if kind is RecurrenceType.DAILY:
        nxt = current + timedelta(days=interval)
    elif kind is RecurrenceType.WEEKLY:
        nxt = _next_weekly(current, interval, pattern.get("days_of_week"))
    elif kind is RecurrenceType.MONTHLY:
        nxt = _add_months(current, interval, pattern.get("day_of_month"))
    else:
        nxt = _add_months(current, 12 * interval)

    end_date = pattern.get("end_date")
    if end_date:
        if isinstance(end_date, str):
            end_date = date.fromisoformat(end_date[:10])
        elif isinstance(end_date, datetime):
            end_date = end_date.date()
        if nxt.date() > end_date:
            return None
    return nxt
