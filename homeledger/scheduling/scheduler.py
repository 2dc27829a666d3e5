"""
Calendar Scheduler

Pure calendar arithmetic for recurring obligations:
- advance a date by one frequency step
- catch a schedule up to "today"
- fire an obligation (materialize a record, move the schedule on)

DESIGN DECISION: Month steps clamp to the last day of the target month
instead of overflowing into the next one (Jan 31 + 1 month = Feb 28/29,
never Mar 2/3).

KNOWN BEHAVIOUR (month-end drift): the catch-up loop always advances
from the previously computed date, never from the original anchor day.
A schedule anchored on the 31st therefore drifts down after its first
clamp and stays there: Jan 31 -> Feb 29 -> Mar 29 -> Apr 29 ...
This matches how existing schedules were computed and is kept on purpose.

Nothing in this module reads the system clock. "today" and "now" are
always passed in.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import Iterable, TypeVar, Union

from homeledger.models.records import (
    Frequency,
    MonetaryRecord,
    RecurringObligation,
    fit_label,
)


DateLike = TypeVar("DateLike", date, datetime)

RECURRING_LABEL_PREFIX = "(recurring) "


class ConfigurationError(ValueError):
    """An enum value outside the known set was supplied."""
    pass


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _clamped(value: DateLike, year: int, month: int) -> DateLike:
    last_day = calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(value.day, last_day))


def coerce_frequency(frequency: Union[Frequency, str]) -> Frequency:
    """
    Accept a Frequency or its string value.

    Raises:
        ConfigurationError: for anything outside the enum
    """
    if isinstance(frequency, Frequency):
        return frequency
    try:
        return Frequency(frequency)
    except ValueError:
        raise ConfigurationError(
            f"Unknown frequency: {frequency!r}. "
            f"Expected one of: {', '.join(f.value for f in Frequency)}"
        ) from None


def shift_months(value: DateLike, months: int) -> DateLike:
    """
    Move by whole calendar months (negative goes back), clamping the day
    to the end of the target month. A datetime keeps its time-of-day.
    """
    index = value.year * 12 + (value.month - 1) + months
    return _clamped(value, index // 12, index % 12 + 1)


def advance_by_one_month(value: DateLike) -> DateLike:
    """Add one calendar month, clamping to the end of the target month."""
    return shift_months(value, 1)


def advance_by_one_year(value: DateLike) -> DateLike:
    """Same month and day next year; Feb 29 falls back to Feb 28."""
    return _clamped(value, value.year + 1, value.month)


def advance_by_frequency(
    value: DateLike,
    frequency: Union[Frequency, str],
) -> DateLike:
    """
    Advance a date by exactly one step of `frequency`.

    Raises:
        ConfigurationError: if frequency is not a known value
    """
    frequency = coerce_frequency(frequency)

    if frequency == Frequency.DAILY:
        return value + timedelta(days=1)
    if frequency == Frequency.WEEKLY:
        return value + timedelta(days=7)
    if frequency == Frequency.MONTHLY:
        return advance_by_one_month(value)
    if frequency == Frequency.YEARLY:
        return advance_by_one_year(value)

    # Frequency grew a member without a step
    raise ConfigurationError(f"No calendar step defined for {frequency.value!r}")


def compute_next_due_date(
    anchor_date: DateLike,
    frequency: Union[Frequency, str],
    today: Union[date, datetime],
) -> DateLike:
    """
    First date reachable from `anchor_date` in whole frequency steps that
    falls on or after `today`.

    Only the calendar date of `today` counts. If `anchor_date` is already
    on or after today it is returned unchanged (zero steps).

    The loop is bounded by (today - anchor_date) / smallest step + 1
    iterations since every step moves the date strictly forward.

    Raises:
        ConfigurationError: if frequency is not a known value
    """
    frequency = coerce_frequency(frequency)
    today = _as_date(today)

    next_due = anchor_date
    while _as_date(next_due) < today:
        next_due = advance_by_frequency(next_due, frequency)
    return next_due


def is_due(obligation: RecurringObligation, today: Union[date, datetime]) -> bool:
    return obligation.next_due_date <= _as_date(today)


def due_obligations(
    obligations: Iterable[RecurringObligation],
    today: Union[date, datetime],
) -> list[RecurringObligation]:
    """Obligations due on or before today, earliest first."""
    return sorted(
        (o for o in obligations if is_due(o, today)),
        key=lambda o: o.next_due_date,
    )


def upcoming_obligations(
    obligations: Iterable[RecurringObligation],
    today: Union[date, datetime],
    window_days: int = 30,
) -> list[RecurringObligation]:
    """Obligations falling due after today and within `window_days`, earliest first."""
    today = _as_date(today)
    horizon = today + timedelta(days=window_days)
    return sorted(
        (o for o in obligations if today < o.next_due_date <= horizon),
        key=lambda o: o.next_due_date,
    )


def schedule_obligation(
    obligation: RecurringObligation,
    today: Union[date, datetime],
) -> RecurringObligation:
    """
    Recompute `next_due_date` from the anchor.

    Call whenever an obligation is created or its frequency/anchor changes.
    """
    next_due = compute_next_due_date(
        obligation.anchor_date, obligation.frequency, today
    )
    return obligation.model_copy(update={"next_due_date": next_due})


def fire_obligation(
    obligation: RecurringObligation,
    now: datetime,
    record_id: str,
) -> tuple[MonetaryRecord, RecurringObligation]:
    """
    Materialize one occurrence of `obligation` and move its schedule on.

    The schedule advances at least one step from the current due date and
    then catches up to the first date strictly after today: the occurrence
    just recorded covers today, so the obligation is never due again
    straight after firing.

    The record label is the obligation label with a "(recurring) " prefix,
    cut to the record label limit.

    Returns:
        (new_record, updated_obligation). Neither input is modified.
    """
    record = MonetaryRecord(
        id=record_id,
        kind=obligation.kind,
        amount=obligation.amount,
        category_id=obligation.category_id,
        timestamp=now,
        label=fit_label(f"{RECURRING_LABEL_PREFIX}{obligation.label}"),
    )

    stepped = advance_by_frequency(obligation.next_due_date, obligation.frequency)
    next_due = compute_next_due_date(
        stepped, obligation.frequency, now.date() + timedelta(days=1)
    )
    updated = obligation.model_copy(update={"next_due_date": next_due})
    return record, updated
