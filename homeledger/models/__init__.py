"""
Data Models Package

This package contains all Pydantic models used in homeledger.
Everything the scheduler and the aggregator consume or produce
conforms to these schemas.
"""

from homeledger.models.records import (
    DEBT_PAYMENTS_CATEGORY_ID,
    DEFAULT_CATEGORIES,
    LABEL_MAX_LENGTH,
    SAVINGS_CATEGORY_ID,
    UNCATEGORIZED_LABEL,
    ArchiveResult,
    Budget,
    BudgetAlert,
    BudgetProgress,
    Category,
    CategoryAggregate,
    DateRange,
    Debt,
    Frequency,
    Goal,
    MonetaryRecord,
    MonthlyTotals,
    PeriodTotals,
    RecurringObligation,
    TransactionKind,
    fit_label,
)
from homeledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "ArchiveResult",
    "Budget",
    "BudgetAlert",
    "BudgetProgress",
    "Category",
    "CategoryAggregate",
    "DateRange",
    "Debt",
    "Frequency",
    "Goal",
    "MonetaryRecord",
    "MonthlyTotals",
    "PeriodTotals",
    "RecurringObligation",
    "TransactionKind",
    "fit_label",
    # Defaults
    "DEBT_PAYMENTS_CATEGORY_ID",
    "DEFAULT_CATEGORIES",
    "LABEL_MAX_LENGTH",
    "SAVINGS_CATEGORY_ID",
    "UNCATEGORIZED_LABEL",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
