"""Calendar scheduling package."""

from homeledger.scheduling.scheduler import (
    RECURRING_LABEL_PREFIX,
    ConfigurationError,
    advance_by_frequency,
    advance_by_one_month,
    advance_by_one_year,
    coerce_frequency,
    compute_next_due_date,
    due_obligations,
    fire_obligation,
    is_due,
    schedule_obligation,
    shift_months,
    upcoming_obligations,
)

__all__ = [
    "RECURRING_LABEL_PREFIX",
    "ConfigurationError",
    "advance_by_frequency",
    "advance_by_one_month",
    "advance_by_one_year",
    "coerce_frequency",
    "compute_next_due_date",
    "due_obligations",
    "fire_obligation",
    "is_due",
    "schedule_obligation",
    "shift_months",
    "upcoming_obligations",
]
