"""Period aggregation and report rollups."""

from homeledger.aggregation.aggregator import (
    aggregate_by_category,
    default_summary_id,
    end_of_day,
    filter_by_date_range,
    resolve_category_name,
    sum_period,
    summarize_for_archive,
)
from homeledger.aggregation.reports import (
    DEFAULT_ALERT_THRESHOLD,
    budget_alerts,
    budget_progress,
    category_breakdown,
    category_names,
    daily_totals,
    filter_records,
    month_bounds,
    monthly_history,
    monthly_spending_by_category,
    top_expenses,
)

__all__ = [
    # Aggregator
    "aggregate_by_category",
    "default_summary_id",
    "end_of_day",
    "filter_by_date_range",
    "resolve_category_name",
    "sum_period",
    "summarize_for_archive",
    # Reports
    "DEFAULT_ALERT_THRESHOLD",
    "budget_alerts",
    "budget_progress",
    "category_breakdown",
    "category_names",
    "daily_totals",
    "filter_records",
    "month_bounds",
    "monthly_history",
    "monthly_spending_by_category",
    "top_expenses",
]
