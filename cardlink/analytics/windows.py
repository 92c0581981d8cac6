"""
Time window helpers shared by the analytics reports.
"""

import math
from datetime import datetime, timedelta
from typing import List, Tuple


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def days_before(as_of: datetime, days: int) -> datetime:
    """Midnight ``days`` days before ``as_of``"""
    return start_of_day(as_of) - timedelta(days=days)


def trailing_months(as_of: datetime, months: int) -> List[Tuple[datetime, datetime]]:
    """
    ``[start, end)`` bounds of the last ``months`` calendar months,
    oldest first, the month containing ``as_of`` last.
    """
    current = as_of.year * 12 + as_of.month - 1
    bounds = []
    for offset in range(months - 1, -1, -1):
        year, month = divmod(current - offset, 12)
        next_year, next_month = divmod(current - offset + 1, 12)
        bounds.append((datetime(year, month + 1, 1), datetime(next_year, next_month + 1, 1)))
    return bounds


def month_label(moment: datetime) -> str:
    """Short month and two-digit year, e.g. ``Oct 26``"""
    return moment.strftime("%b %y")


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)
