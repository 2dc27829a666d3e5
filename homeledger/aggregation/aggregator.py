"""
Period Aggregator

Collapses dated, categorized records into per-category totals.

Used two ways:
1. Read-only rollups (reports, budget progress)
2. Archiving: replacing the detail of a date range with one summary
   record per category and kind

DESIGN DECISION: Range membership is tested on the calendar date of each
record's timestamp. A record at 18:30 on the end date is inside the range.

GUARANTEES:
- Inputs are never mutated and never retained
- Nothing here raises for "no data"; empty input gives empty output
- Categories with no records in range are absent, not zero-filled
"""

from collections.abc import Mapping
from datetime import date, datetime, time
from decimal import Decimal
from typing import Callable, Iterable, Optional
from uuid import uuid4

from homeledger.models.records import (
    UNCATEGORIZED_LABEL,
    ArchiveResult,
    CategoryAggregate,
    MonetaryRecord,
    PeriodTotals,
    TransactionKind,
    fit_label,
)


IdFactory = Callable[[TransactionKind, str], str]


def default_summary_id(kind: TransactionKind, category_id: str) -> str:
    prefix = "sum-inc" if kind == TransactionKind.INCOME else "sum-exp"
    return f"{prefix}-{uuid4().hex}"


def end_of_day(day: date) -> datetime:
    """Last representable instant of `day`."""
    return datetime.combine(day, time.max)


def resolve_category_name(
    lookup: Mapping[str, str],
    category_id: str,
    fallback: str = UNCATEGORIZED_LABEL,
) -> str:
    """Display name for a category id; unknown ids never raise."""
    return lookup.get(category_id) or fallback


def filter_by_date_range(
    records: Iterable[MonetaryRecord],
    start_date: date,
    end_date: date,
) -> list[MonetaryRecord]:
    """Records whose calendar date lies in [start_date, end_date]."""
    return [
        record for record in records
        if start_date <= record.calendar_date <= end_date
    ]


def _group_totals(
    records: Iterable[MonetaryRecord],
) -> dict[str, CategoryAggregate]:
    totals: dict[str, list[Decimal]] = {}
    for record in records:
        income_expense = totals.setdefault(record.category_id, [Decimal("0"), Decimal("0")])
        if record.kind == TransactionKind.INCOME:
            income_expense[0] += record.amount
        else:
            income_expense[1] += record.amount

    return {
        category_id: CategoryAggregate(
            category_id=category_id,
            income_total=income,
            expense_total=expense,
        )
        for category_id, (income, expense) in totals.items()
    }


def aggregate_by_category(
    records: Iterable[MonetaryRecord],
    start_date: date,
    end_date: date,
) -> dict[str, CategoryAggregate]:
    """
    Sum amounts per category and kind over an inclusive date range.

    Args:
        records: Any iterable of records; consumed once
        start_date: First calendar date included
        end_date: Last calendar date included

    Returns:
        Map of category id to its aggregate. Categories without
        records in range are absent. Callers needing zero rows
        for every category must union with their category list.
    """
    return _group_totals(filter_by_date_range(records, start_date, end_date))


def summarize_for_archive(
    records: Iterable[MonetaryRecord],
    start_date: date,
    end_date: date,
    category_name_lookup: Mapping[str, str],
    timestamp: datetime,
    id_factory: Optional[IdFactory] = None,
    fallback_label: str = UNCATEGORIZED_LABEL,
) -> ArchiveResult:
    """
    Build the summary records that replace a date range's detail.

    One income summary per category with income in range, one expense
    summary per category with expenses in range. Every summary carries
    `timestamp` (by convention `end_of_day(end_date)`).
    Labels longer than the record label limit are cut to fit.

    Nothing is mutated. The caller deletes `consumed_ids` and inserts
    `summary_records`. If nothing falls in range the result is empty
    (`result.is_empty`) and the caller should treat it as a no-op.
    """
    id_factory = id_factory or default_summary_id
    in_range = filter_by_date_range(records, start_date, end_date)
    if not in_range:
        return ArchiveResult()

    period = f"{start_date.isoformat()} to {end_date.isoformat()}"
    summaries: list[MonetaryRecord] = []

    for category_id, aggregate in _group_totals(in_range).items():
        name = resolve_category_name(category_name_lookup, category_id, fallback_label)

        if aggregate.income_total > 0:
            summaries.append(MonetaryRecord(
                id=id_factory(TransactionKind.INCOME, category_id),
                kind=TransactionKind.INCOME,
                amount=aggregate.income_total,
                category_id=category_id,
                timestamp=timestamp,
                label=fit_label(f'Income summary "{name}" for {period}'),
            ))
        if aggregate.expense_total > 0:
            summaries.append(MonetaryRecord(
                id=id_factory(TransactionKind.EXPENSE, category_id),
                kind=TransactionKind.EXPENSE,
                amount=aggregate.expense_total,
                category_id=category_id,
                timestamp=timestamp,
                label=fit_label(f'Expense summary "{name}" for {period}'),
            ))

    return ArchiveResult(
        summary_records=summaries,
        consumed_ids=frozenset(record.id for record in in_range),
    )


def sum_period(records: Iterable[MonetaryRecord]) -> PeriodTotals:
    """
    Income and expense totals of records the caller already filtered.

    No filtering happens here (date, category, text search, amount range
    are all the caller's business).
    """
    income = Decimal("0")
    expense = Decimal("0")
    for record in records:
        if record.kind == TransactionKind.INCOME:
            income += record.amount
        else:
            expense += record.amount
    return PeriodTotals(income_total=income, expense_total=expense)
