"""
Budget and Report Rollups

Read-only views built on the aggregator: current-month spending per
category, budget progress and alerts, month-by-month history, the
largest expenses and the last few days' totals.

"today" is always passed in by the caller.
"""

import calendar
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from homeledger.aggregation.aggregator import (
    aggregate_by_category,
    filter_by_date_range,
    resolve_category_name,
    sum_period,
)
from homeledger.models.records import (
    UNCATEGORIZED_LABEL,
    Budget,
    BudgetAlert,
    BudgetProgress,
    Category,
    DateRange,
    MonetaryRecord,
    MonthlyTotals,
    PeriodTotals,
    TransactionKind,
)
from homeledger.scheduling import shift_months


DEFAULT_ALERT_THRESHOLD = 80.0


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar date of a month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def category_names(categories: Iterable[Category]) -> dict[str, str]:
    return {category.id: category.name for category in categories}


def filter_records(
    records: Iterable[MonetaryRecord],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    category_id: Optional[str] = None,
    search: Optional[str] = None,
    min_amount: Optional[Decimal] = None,
    max_amount: Optional[Decimal] = None,
) -> list[MonetaryRecord]:
    """
    Records matching every filter that is set. Unset filters match all.

    Dates compare by calendar date, bounds inclusive. `search` is a
    case-insensitive substring match on the label.

    Raises:
        ValueError: if both dates are given and end_date is before start_date
    """
    if start_date is not None and end_date is not None:
        DateRange(start=start_date, end=end_date)
    needle = search.strip().lower() if search else ""
    matched = []
    for record in records:
        day = record.calendar_date
        if start_date is not None and day < start_date:
            continue
        if end_date is not None and day > end_date:
            continue
        if category_id is not None and record.category_id != category_id:
            continue
        if needle and needle not in record.label.lower():
            continue
        if min_amount is not None and record.amount < min_amount:
            continue
        if max_amount is not None and record.amount > max_amount:
            continue
        matched.append(record)
    return matched


def monthly_spending_by_category(
    records: Iterable[MonetaryRecord],
    today: date,
) -> dict[str, Decimal]:
    """Expense totals per category for the month containing `today`."""
    start, end = month_bounds(today.year, today.month)
    return {
        category_id: aggregate.expense_total
        for category_id, aggregate in aggregate_by_category(records, start, end).items()
        if aggregate.expense_total > 0
    }


def budget_progress(
    budgets: Iterable[Budget],
    records: Iterable[MonetaryRecord],
    categories: Iterable[Category],
    today: date,
    fallback_label: str = UNCATEGORIZED_LABEL,
) -> list[BudgetProgress]:
    """
    How much of each monthly budget has been spent so far this month.

    Sorted by category name. A zero budget reports 0% progress.
    """
    spending = monthly_spending_by_category(records, today)
    names = category_names(categories)

    rows = []
    for budget in budgets:
        spent = spending.get(budget.category_id, Decimal("0"))
        progress = float(spent / budget.amount * 100) if budget.amount > 0 else 0.0
        rows.append(BudgetProgress(
            category_id=budget.category_id,
            category_name=resolve_category_name(names, budget.category_id, fallback_label),
            budgeted=budget.amount,
            spent=spent,
            progress=progress,
        ))
    return sorted(rows, key=lambda row: row.category_name)


def budget_alerts(
    budgets: Iterable[Budget],
    records: Iterable[MonetaryRecord],
    categories: Iterable[Category],
    today: date,
    threshold: float = DEFAULT_ALERT_THRESHOLD,
    fallback_label: str = UNCATEGORIZED_LABEL,
) -> list[BudgetAlert]:
    """Budgets at or above `threshold` percent spent this month."""
    return [
        BudgetAlert(
            category_id=row.category_id,
            category_name=row.category_name,
            progress=round(row.progress),
        )
        for row in budget_progress(budgets, records, categories, today, fallback_label)
        if row.progress >= threshold
    ]


def monthly_history(
    records: Sequence[MonetaryRecord],
    today: date,
    months: int = 12,
) -> list[MonthlyTotals]:
    """
    Income and expense totals for the last `months` months, oldest first.

    The month containing `today` is the last entry. Months without
    records are included with zero totals.
    """
    history = []
    for offset in range(months - 1, -1, -1):
        first = shift_months(today.replace(day=1), -offset)
        year, month = first.year, first.month
        start, end = month_bounds(year, month)
        totals = sum_period(filter_by_date_range(records, start, end))
        history.append(MonthlyTotals(
            year=year,
            month=month,
            income_total=totals.income_total,
            expense_total=totals.expense_total,
        ))
    return history


def top_expenses(
    records: Iterable[MonetaryRecord],
    today: date,
    limit: int = 5,
) -> list[MonetaryRecord]:
    """Largest expense records of the month containing `today`."""
    start, end = month_bounds(today.year, today.month)
    expenses = [
        record for record in filter_by_date_range(records, start, end)
        if record.kind == TransactionKind.EXPENSE
    ]
    return sorted(expenses, key=lambda record: record.amount, reverse=True)[:limit]


def daily_totals(
    records: Sequence[MonetaryRecord],
    today: date,
    days: int = 7,
) -> list[tuple[date, PeriodTotals]]:
    """Per-day totals for the last `days` days ending today, oldest first."""
    result = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        result.append((day, sum_period(filter_by_date_range(records, day, day))))
    return result


def category_breakdown(
    records: Iterable[MonetaryRecord],
    categories: Iterable[Category],
    start_date: date,
    end_date: date,
    fallback_label: str = UNCATEGORIZED_LABEL,
) -> list[tuple[str, Decimal]]:
    """Expense totals by category name over a range, largest first."""
    names = category_names(categories)
    rows = [
        (resolve_category_name(names, category_id, fallback_label), aggregate.expense_total)
        for category_id, aggregate in aggregate_by_category(records, start_date, end_date).items()
        if aggregate.expense_total > 0
    ]
    return sorted(rows, key=lambda row: row[1], reverse=True)
