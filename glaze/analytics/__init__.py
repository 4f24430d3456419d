from .aggregation import (
    category_breakdown,
    filtered_transactions,
    spending_stats,
    time_series,
)
from .date_range import date_range
from .insights import fallback_insight, financial_snapshot, generate_insight

__all__ = [
    "category_breakdown",
    "date_range",
    "fallback_insight",
    "filtered_transactions",
    "financial_snapshot",
    "generate_insight",
    "spending_stats",
    "time_series",
]
