"""
Glaze finance core.

Spending analytics over a transaction list, plus text-to-transaction
extraction and a finance chat assistant backed by Gemini with deterministic
fallbacks.
"""

from .analytics import (
    category_breakdown,
    date_range,
    fallback_insight,
    filtered_transactions,
    financial_snapshot,
    generate_insight,
    spending_stats,
    time_series,
)
from .assistant import FinanceAssistant, strip_markdown
from .extraction import TransactionExtractor, heuristic_parse
from .insight_service import DailyInsightService
from .models import (
    CategoryBreakdownEntry,
    DailyInsight,
    ParsedTransactionCandidate,
    Period,
    SpendingStats,
    TimeSeriesPoint,
    Transaction,
    TransactionType,
    Wallet,
)
from .services import Services, build_services

__version__ = "0.1.0"

__all__ = [
    "CategoryBreakdownEntry",
    "DailyInsight",
    "DailyInsightService",
    "FinanceAssistant",
    "ParsedTransactionCandidate",
    "Period",
    "Services",
    "SpendingStats",
    "TimeSeriesPoint",
    "Transaction",
    "TransactionExtractor",
    "TransactionType",
    "Wallet",
    "build_services",
    "category_breakdown",
    "date_range",
    "fallback_insight",
    "filtered_transactions",
    "financial_snapshot",
    "generate_insight",
    "heuristic_parse",
    "spending_stats",
    "strip_markdown",
    "time_series",
]
