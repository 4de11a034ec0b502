"""Time windows for event-based leaderboards."""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone
from typing import Optional

ALL_TIME = "all_time"
MONTH = "month"
WEEK = "week"

PERIODS = (ALL_TIME, MONTH, WEEK)

PERIOD_LABELS = {
    ALL_TIME: "All Time",
    MONTH: "This Month",
    WEEK: "This Week",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def subtract_months(moment: datetime, months: int) -> datetime:
    """Move ``moment`` back by calendar months, clamping the day of month.

    March 31st minus one month is February 28th (29th in leap years).
    """
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def period_start(period: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Lower bound for ``period`` or ``None`` for an unbounded window."""
    now = now or utc_now()
    if period == WEEK:
        return now - timedelta(days=7)
    if period == MONTH:
        return subtract_months(now, 1)
    return None
