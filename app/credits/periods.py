"""
Calendar helpers for billing periods and monthly rollups.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime


def add_months(value: datetime, months: int = 1, *, day: int | None = None) -> datetime:
    """
    Shift a datetime by whole calendar months, clamping the day.

    Args:
        value: Datetime to shift
        months: Number of months to move forward
        day: Day of month to land on (default: value's day), clamped to
            the length of the target month

    Example:
        add_months(datetime(2024, 1, 31))  # 2024-02-29
        add_months(datetime(2024, 2, 29), day=31)  # 2024-03-31
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(day or value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def anchor_day(period_start: datetime | None, period_end: datetime) -> int:
    """
    Day of month a billing period renews on.

    A bound is clamped below the anchor only in a month shorter than the
    anchor (Jan 31 -> Feb 29). No two consecutive months are both that
    short, so one bound of every period sits on the anchor day.
    """
    if period_start is None:
        return period_end.day
    return max(period_start.day, period_end.day)


def month_key(value: date | datetime) -> str:
    """Return the "YYYY-MM" key used by UsageAggregate."""
    return f"{value.year:04d}-{value.month:02d}"


def parse_month_key(value: str) -> tuple[int, int]:
    """
    Parse a "YYYY-MM" key.

    Raises:
        ValueError: If the key is malformed
    """
    parsed = datetime.strptime(value, "%Y-%m")
    return parsed.year, parsed.month
