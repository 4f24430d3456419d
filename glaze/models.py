"""
Data model shared by the analytics engine and the text services.

Transactions and wallets are owned by the external store and only read here.
Derived results are plain dataclasses with ``to_dict`` for the view layer.
"""

import math
import re
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from .lexicon import DEFAULT_CATEGORY, DEFAULT_WALLET, category_icon


# "25.000", "1.500.000" or "25,000"
_GROUPED_AMOUNT = re.compile(r"\d{1,3}([.,])\d{3}(?:\1\d{3})*")

class Period(str, Enum):
    """Symbolic time window"""
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class Transaction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str = ""
    amount: int | float = Field(..., ge=0)
    category: str = DEFAULT_CATEGORY
    source_wallet: str = Field(
        DEFAULT_WALLET,
        validation_alias=AliasChoices("source_wallet", "sourceWallet"),
    )
    date: datetime
    icon: str = ""
    # Absent for records created before income tracking existed
    type: TransactionType | None = None

    @property
    def is_income(self) -> bool:
        return self.type == TransactionType.INCOME

    @property
    def is_expense(self) -> bool:
        return not self.is_income

    @property
    def signed_amount(self) -> int | float:
        """Effect of the transaction on its wallet balance."""
        return self.amount if self.is_income else -self.amount


class Wallet(BaseModel):
    name: str
    balance: float = 0
    icon: str | None = None


class ParsedTransactionCandidate(BaseModel):
    """Unconfirmed transaction extracted from free text"""
    model_config = ConfigDict(populate_by_name=True)

    item: str
    amount: int = Field(..., ge=0)
    category: str = DEFAULT_CATEGORY
    source_wallet: str = Field(
        DEFAULT_WALLET,
        validation_alias=AliasChoices("source_wallet", "sourceWallet", "wallet"),
    )
    type: TransactionType | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Any:
        """Round fractional amounts and accept numeric strings."""
        if isinstance(v, str):
            v = v.strip()
            match = _GROUPED_AMOUNT.fullmatch(v)
            if match:
                return int(v.replace(match.group(1), ""))
            v = float(v)
        if isinstance(v, float):
            if not math.isfinite(v):
                raise ValueError("amount must be a finite number")
            return int(v + 0.5) if v >= 0 else v
        return v

    @field_validator("category", "source_wallet", mode="before")
    @classmethod
    def blank_to_default(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_CATEGORY if info.field_name == "category" else DEFAULT_WALLET
        return v

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            return v or None
        return v

    def to_transaction(self, id: str, date: datetime, title: str | None = None) -> Transaction:
        """Build the record to hand to the store once the user confirms."""
        return Transaction(
            id=id,
            title=title or self.item,
            amount=self.amount,
            category=self.category,
            source_wallet=self.source_wallet,
            date=date,
            icon=category_icon(self.category),
            type=self.type,
        )


@dataclass
class DateWindow:
    """Inclusive time window"""
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass
class DateRange:
    current: DateWindow
    previous: DateWindow


@dataclass
class CategoryBreakdownEntry:
    name: str
    amount: float
    percentage: int
    color: str
    icon: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TimeSeriesPoint:
    label: str
    amount: float
    is_active: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SpendingStats:
    total_spent: float = 0
    transaction_count: int = 0
    average_transaction: int = 0
    # Unnormalized for months of unequal length
    period_change_percent: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Insight:
    emoji: str
    title: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class FinancialSnapshot:
    """Month-to-date figures used by the daily insight card"""
    transactions: list[Transaction]
    wallets: list[Wallet]
    total_balance: float = 0
    total_spent_this_month: float = 0
    total_income_this_month: float = 0
    top_spending_category: str = DEFAULT_CATEGORY
    budget_used_percent: int = 0

    def prompt_data(self) -> dict[str, Any]:
        """Figures shared with the hosted model, no raw transactions."""
        return {
            "totalBalance": self.total_balance,
            "totalSpentThisMonth": self.total_spent_this_month,
            "totalIncomeThisMonth": self.total_income_this_month,
            "topSpendingCategory": self.top_spending_category,
            "budgetUsedPercent": self.budget_used_percent,
            "transactionCount": len(self.transactions),
        }


class InsightTheme(str, Enum):
    DANGER = "danger"
    SUCCESS = "success"
    INFO = "info"


class DailyInsight(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    theme: InsightTheme
    emoji: str
    title: str
    message: str
    button_text: str = Field(validation_alias=AliasChoices("button_text", "buttonText"))
    top_category: str | None = None
    timestamp: datetime | None = None

    @field_validator("theme", mode="before")
    @classmethod
    def normalize_theme(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v
