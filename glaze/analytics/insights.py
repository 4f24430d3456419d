"""
Rule-based spending insights.

``generate_insight`` produces the short headline shown on the analytics
screen. ``financial_snapshot`` and ``fallback_insight`` back the daily
insight card when the hosted model is not available.
"""

import random
from collections.abc import Iterable
from datetime import datetime

from ..lexicon import DEFAULT_CATEGORY
from ..models import DailyInsight, FinancialSnapshot, Insight, InsightTheme, Period, Transaction, Wallet
from .aggregation import category_breakdown, round_half_up, spending_stats
from .date_range import resolve_now, start_of_day, to_local


BUDGET_PERCENT_CAP = 150
DANGER_THRESHOLD = 80
SUCCESS_THRESHOLD = 40

_PERIOD_WORDING = {
    Period.WEEK: ("this week", "last week"),
    Period.MONTH: ("this month", "last month"),
    Period.YEAR: ("this year", "last year"),
}

# Canned cards per theme; placeholders: {pct}, {left}, {category}
FALLBACK_CARDS: dict[InsightTheme, list[dict[str, str]]] = {
    InsightTheme.DANGER: [
        {
            "emoji": "🚩",
            "title": "Red Flag Banget",
            "message": "Lo check-out apaan aja sih woy? Udah {pct}% budget kepake. {category} nyedot duit paling banyak nih!",
            "button_text": "Lihat Buktinya",
        },
        {
            "emoji": "💀",
            "title": "RIP Dompet Lo",
            "message": "Spending lo di {category} udah kayak sultan. Padahal budget tinggal {left}% doang!",
            "button_text": "Liat Dosa Gue",
        },
        {
            "emoji": "🔥",
            "title": "Duit Lo Kebakar",
            "message": "Anjay {pct}% budget udah lenyap! Kategori {category} jadi biang keroknya.",
            "button_text": "Cek Sekarang",
        },
    ],
    InsightTheme.SUCCESS: [
        {
            "emoji": "💅",
            "title": "Menyala Abangkuh",
            "message": "Dompet lo tebel banget minggu ini! Baru pake {pct}% budget. Gas reward diri sendiri (dikit aja tapi)!",
            "button_text": "Gas Reward",
        },
        {
            "emoji": "👑",
            "title": "Sultan Mode ON",
            "message": "Hemat parah lo! Cuma {pct}% budget kepake. Challenge: bertahan sampe akhir bulan ya!",
            "button_text": "Terima Challenge",
        },
        {
            "emoji": "✨",
            "title": "Slay Banget Sih",
            "message": "Financial goals lo on track! {left}% budget masih aman. Keep it up bestie!",
            "button_text": "Lihat Progress",
        },
    ],
    InsightTheme.INFO: [
        {
            "emoji": "🧠",
            "title": "Info Penting Nih",
            "message": "Budget lo udah {pct}%. Spending terbesar di {category}. Mau atur budget biar lebih aman?",
            "button_text": "Atur Budget",
        },
        {
            "emoji": "📊",
            "title": "Update Keuangan",
            "message": "So far so good! {pct}% budget kepake. Pro tip: sisihkan 20% income buat saving!",
            "button_text": "Lihat Tips",
        },
        {
            "emoji": "💡",
            "title": "Quick Insight",
            "message": "Pengeluaran lo normal nih ({pct}%). Tapi awas sama {category}, jangan sampe kebablasan!",
            "button_text": "Cek Detail",
        },
    ],
}


def generate_insight(
    transactions: Iterable[Transaction],
    period: Period | str = Period.WEEK,
    now: datetime | None = None,
) -> Insight:
    """
    Pick the headline insight for the current window.

    Rules, first match wins: no spending, food or drink above 40% of
    spending, spending up more than 20%, spending down more than 20%, and
    finally the top category's share.
    """
    period = Period(period)
    now = resolve_now(now)
    transactions = list(transactions)
    this_period, last_period = _PERIOD_WORDING[period]

    stats = spending_stats(transactions, period, now)
    if stats.transaction_count == 0:
        return Insight(
            emoji="🎉",
            title="No spending yet!",
            message=f"You haven't spent anything {this_period}. Keep it up or treat yourself!",
        )

    top = category_breakdown(transactions, period, now)[0]

    if top.name in ("Food", "Drink") and top.percentage > 40:
        return Insight(
            emoji="🔥",
            title="Roasting your spending",
            message=(
                f"You spent Rp {round_half_up(top.amount / 1000)}k on "
                f"{top.name.lower()} {this_period}? Seriously?"
            ),
        )

    if stats.period_change_percent > 20:
        return Insight(
            emoji="📈",
            title="Spending is up!",
            message=(
                f"You're spending {stats.period_change_percent}% more than "
                f"{last_period}. Time to slow down?"
            ),
        )

    if stats.period_change_percent < -20:
        return Insight(
            emoji="💪",
            title="Great job saving!",
            message=(
                f"You're spending {abs(stats.period_change_percent)}% less than "
                f"{last_period}. Keep it up!"
            ),
        )

    return Insight(
        emoji="💸",
        title="Top spending category",
        message=f"{top.name} took {top.percentage}% of your spending {this_period}.",
    )


def financial_snapshot(
    transactions: Iterable[Transaction],
    wallets: Iterable[Wallet],
    now: datetime | None = None,
) -> FinancialSnapshot:
    """
    Month-to-date figures for the daily insight card.

    Income stands in for the budget; without income the wallet balance is
    used. Budget usage is capped at 150%.
    """
    now = resolve_now(now)
    month_start = start_of_day(now.replace(day=1))
    wallets = list(wallets)

    this_month = [t for t in transactions if to_local(t.date, now) >= month_start]
    spent = sum(t.amount for t in this_month if t.is_expense)
    income = sum(t.amount for t in this_month if t.is_income)
    balance = sum(w.balance for w in wallets)

    by_category: dict[str, float] = {}
    for t in this_month:
        if t.is_expense:
            category = t.category or DEFAULT_CATEGORY
            by_category[category] = by_category.get(category, 0) + t.amount
    ranked = sorted(by_category.items(), key=lambda item: item[1], reverse=True)

    budget = income if income > 0 else balance
    used = round_half_up(spent / budget * 100) if budget > 0 else 0

    return FinancialSnapshot(
        transactions=this_month,
        wallets=wallets,
        total_balance=balance,
        total_spent_this_month=spent,
        total_income_this_month=income,
        top_spending_category=ranked[0][0] if ranked else DEFAULT_CATEGORY,
        budget_used_percent=min(used, BUDGET_PERCENT_CAP),
    )


def insight_theme(budget_used_percent: int) -> InsightTheme:
    if budget_used_percent > DANGER_THRESHOLD:
        return InsightTheme.DANGER
    if budget_used_percent < SUCCESS_THRESHOLD:
        return InsightTheme.SUCCESS
    return InsightTheme.INFO


def fallback_insight(
    snapshot: FinancialSnapshot,
    rng: random.Random | None = None,
    timestamp: datetime | None = None,
) -> DailyInsight:
    """Canned daily card for the snapshot's budget usage, picked at random within its theme."""
    theme = insight_theme(snapshot.budget_used_percent)
    card = (rng or random).choice(FALLBACK_CARDS[theme])
    values = {
        "pct": snapshot.budget_used_percent,
        "left": 100 - snapshot.budget_used_percent,
        "category": snapshot.top_spending_category,
    }
    return DailyInsight(
        theme=theme,
        emoji=card["emoji"],
        title=card["title"],
        message=card["message"].format(**values),
        button_text=card["button_text"],
        top_category=snapshot.top_spending_category,
        timestamp=timestamp or datetime.now(),
    )
