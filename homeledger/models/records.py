"""
Core Data Models for homeledger

These models define the schemas for everything the scheduler and the
aggregator read and produce. They are designed to:
1. Enforce type safety at runtime
2. Reject impossible values (negative amounts, inverted ranges) loudly
3. Be serializable for storage and logging

DESIGN DECISION: Amounts are Decimal, never float. Sums over many records
must be exact so that archive summaries add up to the detail they replace.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    model_validator,
)


LABEL_MAX_LENGTH = 500


def fit_label(text: str) -> str:
    """Cut generated label text down to the record label limit."""
    return text[:LABEL_MAX_LENGTH]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """Direction of money. Mutually exclusive."""
    INCOME = "income"
    EXPENSE = "expense"


class Frequency(str, Enum):
    """
    How often a recurring obligation falls due.

    Every member must map to a strictly positive calendar step,
    otherwise the due-date catch-up loop would never terminate.
    """
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


# =============================================================================
# RECORDS
# =============================================================================

class MonetaryRecord(BaseModel):
    """
    A single dated, categorized amount of money.

    The category may point at a category that no longer exists;
    lookups treat that as "uncategorized", never as an error.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque unique id, assigned by the owning collection"
    )
    kind: TransactionKind
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Non-negative amount in the single implicit currency"
    )
    category_id: str
    timestamp: datetime = Field(
        ...,
        description="When the money moved; range tests use the date part only"
    )
    label: str = Field(
        default="",
        max_length=LABEL_MAX_LENGTH,
        description="Free text, not interpreted"
    )
    attachment: Optional[str] = Field(
        default=None,
        description="Opaque reference to an invoice image"
    )

    @property
    def calendar_date(self) -> date:
        return self.timestamp.date()


class RecurringObligation(BaseModel):
    """
    A scheduled record that has not been materialized yet.

    `next_due_date` is derived. It is recomputed every time the obligation
    fires or its frequency/anchor changes, and is never left in the past
    relative to the day it was computed.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    kind: TransactionKind
    amount: Decimal = Field(..., ge=0)
    category_id: str
    label: str = Field(default="", max_length=LABEL_MAX_LENGTH)
    frequency: Frequency
    anchor_date: date = Field(
        ...,
        description="Original start date, or the date of the last occurrence"
    )
    next_due_date: date


class Category(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)


class Budget(BaseModel):
    """Monthly spending limit for one category."""
    model_config = ConfigDict(frozen=True)

    category_id: str
    amount: Decimal = Field(..., ge=0)


class Debt(BaseModel):
    """A debt paid down in monthly instalments."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    total_amount: Decimal = Field(..., ge=0)
    remaining_amount: Decimal = Field(..., ge=0)
    monthly_payment: Decimal = Field(..., ge=0)
    next_payment_date: date

    @property
    def is_settled(self) -> bool:
        return self.remaining_amount == 0


class Goal(BaseModel):
    """A savings target that funds are added to over time."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    target_amount: Decimal = Field(..., ge=0)
    current_amount: Decimal = Field(default=Decimal("0"), ge=0)

    @property
    def progress(self) -> float:
        """Percent of the target reached, capped at 100 (0 for a zero target)."""
        if self.target_amount <= 0:
            return 0.0
        return min(float(self.current_amount / self.target_amount * 100), 100.0)


class DateRange(BaseModel):
    """Inclusive range of calendar dates."""
    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode='after')
    def validate_order(self) -> 'DateRange':
        if self.end < self.start:
            raise ValueError("Range end cannot be before start")
        return self

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end


# =============================================================================
# AGGREGATION RESULTS
# =============================================================================

class CategoryAggregate(BaseModel):
    """Totals of one category over a date range, split by kind."""
    model_config = ConfigDict(frozen=True)

    category_id: str
    income_total: Decimal = Decimal("0")
    expense_total: Decimal = Decimal("0")


class PeriodTotals(BaseModel):
    """Income and expense totals of an already-filtered set of records."""
    model_config = ConfigDict(frozen=True)

    income_total: Decimal = Decimal("0")
    expense_total: Decimal = Decimal("0")

    @computed_field
    @property
    def net(self) -> Decimal:
        return self.income_total - self.expense_total


class ArchiveResult(BaseModel):
    """
    Outcome of collapsing a date range into per-category summaries.

    The aggregator never mutates anything. The caller deletes exactly
    `consumed_ids` and inserts exactly `summary_records`.

    An empty result (nothing in range) is the named "empty range" case:
    a no-op for the caller, never a failure.
    """
    model_config = ConfigDict(frozen=True)

    summary_records: list[MonetaryRecord] = Field(default_factory=list)
    consumed_ids: frozenset[str] = Field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not self.consumed_ids

    @property
    def record_count(self) -> int:
        return len(self.consumed_ids)


class BudgetProgress(BaseModel):
    model_config = ConfigDict(frozen=True)

    category_id: str
    category_name: str
    budgeted: Decimal
    spent: Decimal
    progress: float = Field(
        ...,
        ge=0.0,
        description="Spent as a percentage of budgeted (0 when budget is 0)"
    )


class BudgetAlert(BaseModel):
    model_config = ConfigDict(frozen=True)

    category_id: str
    category_name: str
    progress: int


class MonthlyTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    year: int
    month: int = Field(..., ge=1, le=12)
    income_total: Decimal = Decimal("0")
    expense_total: Decimal = Decimal("0")

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


# =============================================================================
# DEFAULTS
# =============================================================================

UNCATEGORIZED_LABEL = "Uncategorized"

DEBT_PAYMENTS_CATEGORY_ID = "cat-9"
SAVINGS_CATEGORY_ID = "cat-10"

DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(id="cat-1", name="Food & Drink"),
    Category(id="cat-2", name="Transport"),
    Category(id="cat-3", name="Housing & Bills"),
    Category(id="cat-4", name="Shopping"),
    Category(id="cat-5", name="Entertainment"),
    Category(id="cat-6", name="Health"),
    Category(id="cat-7", name="Salary"),
    Category(id=DEBT_PAYMENTS_CATEGORY_ID, name="Debt Payments"),
    Category(id=SAVINGS_CATEGORY_ID, name="Savings & Investments"),
    Category(id="cat-8", name="Other"),
)
