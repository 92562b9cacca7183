"""Budget period windows.

Weeks start on Sunday. Every helper raises ``ValueError`` for an unknown
period name.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta

PERIODS = ("monthly", "weekly", "yearly")


def _check(period: str) -> None:
    if period not in PERIODS:
        raise ValueError(f"period must be one of {', '.join(PERIODS)}, got {period!r}")


def week_start(day: date) -> date:
    # date.weekday(): Monday=0 ... Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def period_bounds(period: str, today: date) -> tuple[date, date]:
    """Return the inclusive first and last day of the period containing ``today``."""

    _check(period)
    if period == "monthly":
        last = calendar.monthrange(today.year, today.month)[1]
        return date(today.year, today.month, 1), date(today.year, today.month, last)
    if period == "weekly":
        start = week_start(today)
        return start, start + timedelta(days=6)
    return date(today.year, 1, 1), date(today.year, 12, 31)


def in_current_period(day: date, period: str, today: date) -> bool:
    start, end = period_bounds(period, today)
    return start <= day <= end


def days_in_period(period: str, today: date) -> int:
    start, end = period_bounds(period, today)
    return (end - start).days + 1


def days_passed(period: str, today: date) -> int:
    """Days elapsed in the current period, counting ``today``."""

    start, _ = period_bounds(period, today)
    return (today - start).days + 1
