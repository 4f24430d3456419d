"""
Date windows for the week, month and year periods.

All windows are inclusive: they start at 00:00:00.000 and end at
23:59:59.999 on the local wall clock of ``now``. Previous windows are full
calendar periods, so a month is compared against a month of possibly
different length.
"""

import calendar
from datetime import datetime, timedelta

from ..models import DateRange, DateWindow, Period


def resolve_now(now: datetime | None = None) -> datetime:
    """Return ``now`` or the current local wall-clock time."""
    return now if now is not None else datetime.now()


def to_local(value: datetime, reference: datetime) -> datetime:
    """
    Express a timestamp in the clock frame of ``reference``.

    Naive references stand for the machine's local time, aware references
    keep their own tzinfo. Naive values are taken to already be local.
    """
    if reference.tzinfo is None:
        if value.tzinfo is None:
            return value
        return value.astimezone().replace(tzinfo=None)
    if value.tzinfo is None:
        return value.replace(tzinfo=reference.tzinfo)
    return value.astimezone(reference.tzinfo)


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=23, minute=59, second=59, microsecond=999000)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _month_window(year: int, month: int, reference: datetime) -> DateWindow:
    start = start_of_day(reference.replace(year=year, month=month, day=1))
    end = end_of_day(start.replace(day=days_in_month(year, month)))
    return DateWindow(start=start, end=end)


def week_window(now: datetime) -> DateWindow:
    """Monday-start week containing ``now``."""
    start = start_of_day(now - timedelta(days=now.weekday()))
    return DateWindow(start=start, end=end_of_day(start + timedelta(days=6)))


def date_range(period: Period | str, now: datetime | None = None) -> DateRange:
    """
    Compute the current and previous windows for a period.

    Args:
        period: week, month or year
        now: Reference time, defaults to the local wall clock

    Returns:
        DateRange with inclusive current and previous windows

    Raises:
        ValueError: If the period is not a known value
    """
    period = Period(period)
    now = resolve_now(now)

    if period is Period.MONTH:
        # reference pinned to day 1 so replace() never lands on a missing day
        first = now.replace(day=1)
        if now.month == 1:
            previous = _month_window(now.year - 1, 12, first)
        else:
            previous = _month_window(now.year, now.month - 1, first)
        return DateRange(current=_month_window(now.year, now.month, first), previous=previous)

    if period is Period.YEAR:
        first = now.replace(month=1, day=1)
        current = DateWindow(
            start=start_of_day(first),
            end=end_of_day(first.replace(month=12, day=31)),
        )
        previous = DateWindow(
            start=start_of_day(first.replace(year=now.year - 1)),
            end=end_of_day(first.replace(year=now.year - 1, month=12, day=31)),
        )
        return DateRange(current=current, previous=previous)

    current = week_window(now)
    previous_end = end_of_day(current.start - timedelta(days=1))
    previous = DateWindow(
        start=start_of_day(previous_end - timedelta(days=6)),
        end=previous_end,
    )
    return DateRange(current=current, previous=previous)
