"""
Spending aggregation over an in-memory transaction list.

Every function here is pure and total: it reads the transactions, never
mutates them, and defaults unknown or missing data instead of raising.
Income is excluded everywhere except ``filtered_transactions``.
"""

import math
from collections.abc import Iterable
from datetime import datetime, timedelta

from ..lexicon import DEFAULT_CATEGORY, category_color, category_icon
from ..models import (
    CategoryBreakdownEntry,
    DateWindow,
    Period,
    SpendingStats,
    TimeSeriesPoint,
    Transaction,
)
from .date_range import date_range, days_in_month, resolve_now, to_local


MAX_BREAKDOWN_ENTRIES = 5
WEEKDAY_LABELS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
WEEK_OF_MONTH_LABELS = ["W1", "W2", "W3", "W4", "W5"]
MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def round_half_up(value: float) -> int:
    """Round .5 towards positive infinity, as the app's charts do."""
    return int(math.floor(value + 0.5))


def percentage(part: float, total: float) -> int:
    return round_half_up(part / total * 100) if total > 0 else 0


def in_window(
    transactions: Iterable[Transaction], window: DateWindow, now: datetime
) -> list[Transaction]:
    """Transactions whose date falls inside the inclusive window."""
    return [t for t in transactions if window.contains(to_local(t.date, now))]


def expenses(transactions: Iterable[Transaction]) -> list[Transaction]:
    return [t for t in transactions if t.is_expense]


def _breakdown_entry(name: str, amount: float, total: float) -> CategoryBreakdownEntry:
    return CategoryBreakdownEntry(
        name=name,
        amount=amount,
        percentage=percentage(amount, total),
        color=category_color(name),
        icon=category_icon(name),
    )


def category_breakdown(
    transactions: Iterable[Transaction],
    period: Period | str = Period.WEEK,
    now: datetime | None = None,
) -> list[CategoryBreakdownEntry]:
    """
    Expense totals per category for the current window, largest first.

    At most five entries are returned. When there are more categories, the
    top four are kept and the rest are summed into a synthetic "Other"
    entry. The rollup is positional: a real "Other" category among the top
    four stays a separate row.
    """
    now = resolve_now(now)
    current = date_range(period, now).current

    totals: dict[str, float] = {}
    for t in expenses(in_window(transactions, current, now)):
        category = t.category or DEFAULT_CATEGORY
        totals[category] = totals.get(category, 0) + t.amount

    total = sum(totals.values())
    entries = sorted(
        (_breakdown_entry(name, amount, total) for name, amount in totals.items()),
        key=lambda entry: entry.amount,
        reverse=True,
    )

    if len(entries) > MAX_BREAKDOWN_ENTRIES:
        top = entries[:MAX_BREAKDOWN_ENTRIES - 1]
        rest = sum(entry.amount for entry in entries[MAX_BREAKDOWN_ENTRIES - 1:])
        top.append(_breakdown_entry(DEFAULT_CATEGORY, rest, total))
        return top

    return entries


def time_series(
    transactions: Iterable[Transaction],
    period: Period | str = Period.WEEK,
    now: datetime | None = None,
) -> list[TimeSeriesPoint]:
    """
    Expense totals bucketed for charting.

    - week: 7 buckets Mon..Sun, by whole days since the window start
    - month: W1..W5 trimmed to ceil(days_in_month / 7), by (day - 1) // 7
    - year: Jan..Dec, by calendar month

    The bucket containing ``now`` is marked active.
    """
    period = Period(period)
    now = resolve_now(now)
    current = date_range(period, now).current
    window_expenses = expenses(in_window(transactions, current, now))

    if period is Period.WEEK:
        labels = WEEKDAY_LABELS
        active_index = now.weekday()

        def bucket(moment: datetime) -> int:
            return (moment - current.start) // timedelta(days=1)

    elif period is Period.MONTH:
        labels = WEEK_OF_MONTH_LABELS[:math.ceil(days_in_month(now.year, now.month) / 7)]
        active_index = (now.day - 1) // 7

        def bucket(moment: datetime) -> int:
            return (moment.day - 1) // 7

    else:
        labels = MONTH_LABELS
        active_index = now.month - 1

        def bucket(moment: datetime) -> int:
            return moment.month - 1

    totals: list[float] = [0] * len(labels)
    for t in window_expenses:
        index = bucket(to_local(t.date, now))
        if 0 <= index < len(totals):
            totals[index] += t.amount

    return [
        TimeSeriesPoint(label=label, amount=totals[index], is_active=index == active_index)
        for index, label in enumerate(labels)
    ]


def spending_stats(
    transactions: Iterable[Transaction],
    period: Period | str = Period.WEEK,
    now: datetime | None = None,
) -> SpendingStats:
    """
    Expense summary for the current window.

    ``period_change_percent`` compares against the previous full calendar
    window and is 0 when that window has no spending. Month comparisons are
    not normalized for the number of days.
    """
    now = resolve_now(now)
    window = date_range(period, now)
    transactions = list(transactions)

    current_expenses = expenses(in_window(transactions, window.current, now))
    previous_expenses = expenses(in_window(transactions, window.previous, now))

    current_total = sum(t.amount for t in current_expenses)
    previous_total = sum(t.amount for t in previous_expenses)
    count = len(current_expenses)

    if previous_total > 0:
        change = round_half_up((current_total - previous_total) / previous_total * 100)
    else:
        change = 0

    return SpendingStats(
        total_spent=current_total,
        transaction_count=count,
        average_transaction=round_half_up(current_total / count) if count else 0,
        period_change_percent=change,
    )


def filtered_transactions(
    transactions: Iterable[Transaction],
    period: Period | str = Period.WEEK,
    now: datetime | None = None,
) -> list[Transaction]:
    """All transactions, income included, in the current window, newest first."""
    now = resolve_now(now)
    current = date_range(period, now).current
    return sorted(
        in_window(transactions, current, now),
        key=lambda t: to_local(t.date, now),
        reverse=True,
    )
