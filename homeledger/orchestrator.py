"""
Main Orchestrator for homeledger

This module ties the pure core to its collaborators (storage, clock,
audit log, AI) and defines the end-to-end flows for:
1. Records (add, delete, filtered totals)
2. Recurring obligations (create/edit -> schedule, fire -> record + reschedule)
3. Archiving (preview -> commit: delete detail, insert summaries)
4. Debt payments and savings goals
5. Categories and budgets
6. Budget and report views
7. AI suggestions

DESIGN DECISION: Every flow reads a whole snapshot, computes with the
pure scheduler/aggregator, and writes whole collections back. One
orchestrator instance is the single writer for its store.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Mapping, Optional, Sequence, Union
from uuid import UUID, uuid4

from homeledger.agents import AIServiceError, SuggestionAgent, SuggestionError
from homeledger.aggregation import (
    budget_alerts,
    budget_progress,
    category_breakdown,
    category_names,
    daily_totals,
    end_of_day,
    filter_records,
    monthly_history,
    sum_period,
    summarize_for_archive,
    top_expenses,
)
from homeledger.audit import AuditLogger, create_correlation_id
from homeledger.config import AppSettings, Settings, get_settings
from homeledger.models.records import (
    DEBT_PAYMENTS_CATEGORY_ID,
    SAVINGS_CATEGORY_ID,
    ArchiveResult,
    Budget,
    BudgetAlert,
    BudgetProgress,
    Category,
    DateRange,
    Debt,
    Frequency,
    Goal,
    MonetaryRecord,
    MonthlyTotals,
    PeriodTotals,
    RecurringObligation,
    TransactionKind,
)
from homeledger.scheduling import (
    advance_by_one_month,
    coerce_frequency,
    due_obligations,
    fire_obligation,
    schedule_obligation,
    upcoming_obligations,
)
from homeledger.services import (
    Clock,
    CollectionStore,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    NotFoundError,
    StorageError,
    SystemClock,
)


IdFactory = Callable[[str], str]


def default_id_factory(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex}"


class RecordFlow:
    """Add and remove individual records, and total a filtered view."""

    def __init__(
        self,
        collections: CollectionStore,
        clock: Clock,
        audit_logger: Optional[AuditLogger] = None,
        id_factory: IdFactory = default_id_factory,
    ):
        self._collections = collections
        self._clock = clock
        self._audit_logger = audit_logger
        self._new_id = id_factory

    async def add_record(
        self,
        kind: TransactionKind,
        amount: Decimal,
        category_id: str,
        label: str = "",
        timestamp: Optional[datetime] = None,
        attachment: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> MonetaryRecord:
        correlation_id = correlation_id or create_correlation_id()

        record = MonetaryRecord(
            id=self._new_id("txn"),
            kind=kind,
            amount=amount,
            category_id=category_id,
            timestamp=timestamp or self._clock.now(),
            label=label,
            attachment=attachment,
        )
        records = await self._collections.get_records()
        await self._collections.replace_records([*records, record])

        if self._audit_logger:
            await self._audit_logger.log_record_added(
                record_id=record.id,
                kind=record.kind.value,
                amount=str(record.amount),
                correlation_id=correlation_id,
            )
        return record

    async def delete_record(self, record_id: str) -> None:
        """
        Raises:
            NotFoundError: if no record has this id
        """
        records = await self._collections.get_records()
        kept = [r for r in records if r.id != record_id]
        if len(kept) == len(records):
            raise NotFoundError(f"Record not found: {record_id}")
        await self._collections.replace_records(kept)

    async def filtered_totals(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        category_id: Optional[str] = None,
        search: Optional[str] = None,
        min_amount: Optional[Decimal] = None,
        max_amount: Optional[Decimal] = None,
    ) -> tuple[list[MonetaryRecord], PeriodTotals]:
        """
        Records matching every given filter, newest first, with their totals.
        """
        records = filter_records(
            await self._collections.get_records(),
            start_date=start_date,
            end_date=end_date,
            category_id=category_id,
            search=search,
            min_amount=min_amount,
            max_amount=max_amount,
        )
        records.sort(key=lambda r: r.timestamp, reverse=True)
        return records, sum_period(records)


class RecurringFlow:
    """
    Orchestrates the recurring obligation lifecycle.

    Flow:
    1. Create/edit -> next due date computed from the anchor
    2. Fire -> a concrete record is added and the schedule moves on
    3. Due/upcoming lists for reminders
    """

    def __init__(
        self,
        collections: CollectionStore,
        clock: Clock,
        audit_logger: Optional[AuditLogger] = None,
        app_settings: Optional[AppSettings] = None,
        id_factory: IdFactory = default_id_factory,
    ):
        self._collections = collections
        self._clock = clock
        self._audit_logger = audit_logger
        self._app = app_settings or get_settings().app
        self._new_id = id_factory

    async def _get(self, obligation_id: str) -> tuple[list[RecurringObligation], RecurringObligation]:
        obligations = await self._collections.get_obligations()
        for obligation in obligations:
            if obligation.id == obligation_id:
                return obligations, obligation
        raise NotFoundError(f"Recurring obligation not found: {obligation_id}")

    async def save_obligation(
        self,
        kind: TransactionKind,
        amount: Decimal,
        category_id: str,
        frequency: Union[Frequency, str],
        anchor_date: date,
        label: str = "",
        obligation_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> RecurringObligation:
        """
        Create a new obligation, or replace an existing one when
        `obligation_id` is given. Either way the due date is recomputed
        from the anchor.

        Raises:
            NotFoundError: if `obligation_id` is given but unknown
            ConfigurationError: if frequency is not a known value
        """
        correlation_id = correlation_id or create_correlation_id()
        frequency = coerce_frequency(frequency)

        if obligation_id is not None:
            obligations, _ = await self._get(obligation_id)
        else:
            obligations = await self._collections.get_obligations()
            obligation_id = self._new_id("rec")

        draft = RecurringObligation(
            id=obligation_id,
            kind=kind,
            amount=amount,
            category_id=category_id,
            label=label,
            frequency=frequency,
            anchor_date=anchor_date,
            next_due_date=anchor_date,
        )
        obligation = schedule_obligation(draft, self._clock.today())

        updated = [o for o in obligations if o.id != obligation.id]
        updated.append(obligation)
        await self._collections.replace_obligations(updated)

        if self._audit_logger:
            await self._audit_logger.log_obligation_scheduled(
                obligation_id=obligation.id,
                frequency=obligation.frequency.value,
                next_due_date=obligation.next_due_date,
                correlation_id=correlation_id,
            )
        return obligation

    async def delete_obligation(self, obligation_id: str) -> None:
        obligations, _ = await self._get(obligation_id)
        await self._collections.replace_obligations(
            [o for o in obligations if o.id != obligation_id]
        )

    async def fire(
        self,
        obligation_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[MonetaryRecord, RecurringObligation]:
        """
        Record one occurrence of an obligation now.

        Returns:
            (new_record, rescheduled_obligation)

        Raises:
            NotFoundError: if the obligation does not exist
        """
        correlation_id = correlation_id or create_correlation_id()
        obligations, obligation = await self._get(obligation_id)

        record, rescheduled = fire_obligation(
            obligation, self._clock.now(), self._new_id("txn")
        )

        records = await self._collections.get_records()
        await self._collections.replace_records([*records, record])
        await self._collections.replace_obligations(
            [rescheduled if o.id == obligation_id else o for o in obligations]
        )

        if self._audit_logger:
            await self._audit_logger.log_obligation_fired(
                obligation_id=obligation_id,
                record_id=record.id,
                previous_due_date=obligation.next_due_date,
                next_due_date=rescheduled.next_due_date,
                correlation_id=correlation_id,
            )
        return record, rescheduled

    async def due(self) -> list[RecurringObligation]:
        return due_obligations(await self._collections.get_obligations(), self._clock.today())

    async def upcoming(self) -> list[RecurringObligation]:
        return upcoming_obligations(
            await self._collections.get_obligations(),
            self._clock.today(),
            window_days=self._app.upcoming_window_days,
        )


@dataclass(frozen=True)
class ArchiveOutcome:
    """What an archive run did, with a message fit for the user."""

    result: ArchiveResult
    message: str

    @property
    def archived(self) -> bool:
        return not self.result.is_empty


class ArchiveFlow:
    """
    Orchestrates archiving a date range.

    Flow:
    1. Preview -> summaries computed, nothing written
    2. Archive -> consumed records deleted, summaries inserted

    An empty range is a no-op with a "nothing to archive" message.
    A range whose end is before its start raises ValueError.
    """

    def __init__(
        self,
        collections: CollectionStore,
        audit_logger: Optional[AuditLogger] = None,
        app_settings: Optional[AppSettings] = None,
        id_factory: IdFactory = default_id_factory,
    ):
        self._collections = collections
        self._audit_logger = audit_logger
        self._app = app_settings or get_settings().app
        self._new_id = id_factory

    async def _summarize(
        self,
        records: Sequence[MonetaryRecord],
        start_date: date,
        end_date: date,
    ) -> ArchiveResult:
        period = DateRange(start=start_date, end=end_date)
        names = category_names(await self._collections.get_categories())
        return summarize_for_archive(
            records,
            period.start,
            period.end,
            names,
            end_of_day(period.end),
            id_factory=lambda kind, _: self._new_id(
                "sum-inc" if kind == TransactionKind.INCOME else "sum-exp"
            ),
            fallback_label=self._app.uncategorized_label,
        )

    async def preview(self, start_date: date, end_date: date) -> ArchiveResult:
        """Summaries an archive of this range would produce. Writes nothing."""
        records = await self._collections.get_records()
        return await self._summarize(records, start_date, end_date)

    async def archive(
        self,
        start_date: date,
        end_date: date,
        correlation_id: Optional[UUID] = None,
    ) -> ArchiveOutcome:
        """
        Replace every record in [start_date, end_date] with per-category
        summaries. This cannot be undone.
        """
        correlation_id = correlation_id or create_correlation_id()

        records = await self._collections.get_records()
        result = await self._summarize(records, start_date, end_date)

        if result.is_empty:
            if self._audit_logger:
                await self._audit_logger.log_archive_empty(
                    start_date=start_date,
                    end_date=end_date,
                    correlation_id=correlation_id,
                )
            return ArchiveOutcome(
                result=result,
                message="There are no transactions in the selected range to archive.",
            )

        kept = [r for r in records if r.id not in result.consumed_ids]
        try:
            await self._collections.replace_records([*kept, *result.summary_records])
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="archive_write_failed",
                    error_message=str(e),
                    details={"consumed_count": result.record_count},
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_archive_completed(
                start_date=start_date,
                end_date=end_date,
                consumed_count=result.record_count,
                summary_count=len(result.summary_records),
                correlation_id=correlation_id,
            )
        return ArchiveOutcome(
            result=result,
            message=f"Archived {result.record_count} transactions successfully.",
        )


class DebtFlow:
    """Record instalments against debts."""

    def __init__(
        self,
        collections: CollectionStore,
        clock: Clock,
        audit_logger: Optional[AuditLogger] = None,
        id_factory: IdFactory = default_id_factory,
    ):
        self._collections = collections
        self._clock = clock
        self._audit_logger = audit_logger
        self._new_id = id_factory

    async def make_payment(
        self,
        debt_id: str,
        amount: Decimal,
        create_expense: bool = True,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Debt, Optional[MonetaryRecord]]:
        """
        Pay `amount` off a debt and move its next payment date on one month.

        The remaining amount never goes below zero. With `create_expense`
        an expense record is added in the debt payments category.

        Raises:
            ValueError: if amount is not positive
            NotFoundError: if the debt, or the debt payments category
                           (when create_expense is set), does not exist
        """
        correlation_id = correlation_id or create_correlation_id()
        if amount <= 0:
            raise ValueError("Payment amount must be greater than zero")

        debts = await self._collections.get_debts()
        debt = next((d for d in debts if d.id == debt_id), None)
        if debt is None:
            raise NotFoundError(f"Debt not found: {debt_id}")

        if create_expense:
            categories = await self._collections.get_categories()
            if not any(c.id == DEBT_PAYMENTS_CATEGORY_ID for c in categories):
                raise NotFoundError(
                    "The debt payments category does not exist. Please add it first."
                )

        updated = debt.model_copy(update={
            "remaining_amount": max(debt.remaining_amount - amount, Decimal("0")),
            "next_payment_date": advance_by_one_month(debt.next_payment_date),
        })
        await self._collections.replace_debts(
            [updated if d.id == debt_id else d for d in debts]
        )

        record = None
        if create_expense:
            record = MonetaryRecord(
                id=self._new_id("txn"),
                kind=TransactionKind.EXPENSE,
                amount=amount,
                category_id=DEBT_PAYMENTS_CATEGORY_ID,
                timestamp=self._clock.now(),
                label=f"Debt payment: {debt.name}",
            )
            records = await self._collections.get_records()
            await self._collections.replace_records([*records, record])

        if self._audit_logger:
            await self._audit_logger.log_debt_payment(
                debt_id=debt_id,
                amount=str(amount),
                remaining=str(updated.remaining_amount),
                next_payment_date=updated.next_payment_date,
                correlation_id=correlation_id,
            )
        return updated, record


class GoalFlow:
    """Savings goals and contributions towards them."""

    def __init__(
        self,
        collections: CollectionStore,
        clock: Clock,
        audit_logger: Optional[AuditLogger] = None,
        id_factory: IdFactory = default_id_factory,
    ):
        self._collections = collections
        self._clock = clock
        self._audit_logger = audit_logger
        self._new_id = id_factory

    async def create_goal(self, name: str, target_amount: Decimal) -> Goal:
        """
        Raises:
            ValueError: if target_amount is not positive or name is empty
        """
        if target_amount <= 0:
            raise ValueError("Goal target must be greater than zero")
        goal = Goal(id=self._new_id("goal"), name=name, target_amount=target_amount)
        goals = await self._collections.get_goals()
        await self._collections.replace_goals([*goals, goal])
        return goal

    async def delete_goal(self, goal_id: str) -> None:
        goals = await self._collections.get_goals()
        kept = [g for g in goals if g.id != goal_id]
        if len(kept) == len(goals):
            raise NotFoundError(f"Goal not found: {goal_id}")
        await self._collections.replace_goals(kept)

    async def add_funds(
        self,
        goal_id: str,
        amount: Decimal,
        create_expense: bool = True,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Goal, Optional[MonetaryRecord]]:
        """
        Add `amount` to a goal's saved total.

        With `create_expense` an expense record is added in the savings
        category, so the money leaves the spendable balance.

        Raises:
            ValueError: if amount is not positive
            NotFoundError: if the goal, or the savings category (when
                           create_expense is set), does not exist
        """
        correlation_id = correlation_id or create_correlation_id()
        if amount <= 0:
            raise ValueError("Amount must be greater than zero")

        goals = await self._collections.get_goals()
        goal = next((g for g in goals if g.id == goal_id), None)
        if goal is None:
            raise NotFoundError(f"Goal not found: {goal_id}")

        if create_expense:
            categories = await self._collections.get_categories()
            if not any(c.id == SAVINGS_CATEGORY_ID for c in categories):
                raise NotFoundError(
                    "The savings category does not exist. Please add it first."
                )

        updated = goal.model_copy(update={"current_amount": goal.current_amount + amount})
        await self._collections.replace_goals(
            [updated if g.id == goal_id else g for g in goals]
        )

        record = None
        if create_expense:
            record = MonetaryRecord(
                id=self._new_id("txn"),
                kind=TransactionKind.EXPENSE,
                amount=amount,
                category_id=SAVINGS_CATEGORY_ID,
                timestamp=self._clock.now(),
                label=f"Added to goal: {goal.name}",
            )
            records = await self._collections.get_records()
            await self._collections.replace_records([*records, record])

        if self._audit_logger:
            await self._audit_logger.log_goal_funds_added(
                goal_id=goal_id,
                amount=str(amount),
                current_amount=str(updated.current_amount),
                correlation_id=correlation_id,
            )
        return updated, record


class CategoryFlow:
    """
    User-managed categories.

    Deleting a category leaves its records in place; they read as
    uncategorized from then on.
    """

    def __init__(
        self,
        collections: CollectionStore,
        id_factory: IdFactory = default_id_factory,
    ):
        self._collections = collections
        self._new_id = id_factory

    async def add_category(self, name: str) -> Category:
        category = Category(id=self._new_id("cat"), name=name)
        categories = await self._collections.get_categories()
        await self._collections.replace_categories([*categories, category])
        return category

    async def delete_category(self, category_id: str) -> None:
        categories = await self._collections.get_categories()
        kept = [c for c in categories if c.id != category_id]
        if len(kept) == len(categories):
            raise NotFoundError(f"Category not found: {category_id}")
        await self._collections.replace_categories(kept)

    async def move_category(self, from_index: int, to_index: int) -> list[Category]:
        """Move one category to a new position in the display order."""
        categories = await self._collections.get_categories()
        for index in (from_index, to_index):
            if not 0 <= index < len(categories):
                raise ValueError(f"Category position out of range: {index}")
        moved = categories.pop(from_index)
        categories.insert(to_index, moved)
        await self._collections.replace_categories(categories)
        return categories


class BudgetFlow:
    """Monthly budgets per category."""

    def __init__(self, collections: CollectionStore):
        self._collections = collections

    async def save_budgets(self, amounts: Mapping[str, Decimal]) -> list[Budget]:
        """
        Replace all budgets with `amounts` (category id -> monthly limit).

        Only positive amounts are kept; a zero clears that category's budget.
        """
        budgets = [
            Budget(category_id=category_id, amount=amount)
            for category_id, amount in amounts.items()
            if amount > 0
        ]
        await self._collections.replace_budgets(budgets)
        return budgets


class ReportFlow:
    """Read-only budget and report views for the current date."""

    def __init__(
        self,
        collections: CollectionStore,
        clock: Clock,
        app_settings: Optional[AppSettings] = None,
    ):
        self._collections = collections
        self._clock = clock
        self._app = app_settings or get_settings().app

    async def budget_progress(self) -> list[BudgetProgress]:
        return budget_progress(
            await self._collections.get_budgets(),
            await self._collections.get_records(),
            await self._collections.get_categories(),
            self._clock.today(),
            fallback_label=self._app.uncategorized_label,
        )

    async def budget_alerts(self) -> list[BudgetAlert]:
        return budget_alerts(
            await self._collections.get_budgets(),
            await self._collections.get_records(),
            await self._collections.get_categories(),
            self._clock.today(),
            threshold=self._app.budget_alert_threshold,
            fallback_label=self._app.uncategorized_label,
        )

    async def history(self) -> list[MonthlyTotals]:
        return monthly_history(
            await self._collections.get_records(),
            self._clock.today(),
            months=self._app.history_months,
        )

    async def top_expenses(self, limit: int = 5) -> list[MonetaryRecord]:
        return top_expenses(await self._collections.get_records(), self._clock.today(), limit)

    async def last_days(self, days: int = 7) -> list[tuple[date, PeriodTotals]]:
        return daily_totals(await self._collections.get_records(), self._clock.today(), days)

    async def breakdown(self, start_date: date, end_date: date) -> list[tuple[str, Decimal]]:
        """Expense totals by category name over a range, largest first."""
        return category_breakdown(
            await self._collections.get_records(),
            await self._collections.get_categories(),
            start_date,
            end_date,
            fallback_label=self._app.uncategorized_label,
        )


class SuggestionFlow:
    """
    Orchestrates AI suggestions over stored data.

    Failures are audited and then re-raised unchanged; the caller decides
    how to present them.
    """

    def __init__(
        self,
        collections: CollectionStore,
        clock: Clock,
        agent: Optional[SuggestionAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._collections = collections
        self._clock = clock
        self._agent = agent or SuggestionAgent()
        self._audit_logger = audit_logger

    async def _audited(self, suggestion_type: str, record_count: int, call):
        correlation_id = create_correlation_id()
        if self._audit_logger:
            await self._audit_logger.log_suggestion_requested(
                suggestion_type=suggestion_type,
                record_count=record_count,
                correlation_id=correlation_id,
            )
        try:
            return await call
        except SuggestionError as e:
            if self._audit_logger:
                if isinstance(e, AIServiceError):
                    await self._audit_logger.log_external_service_error(
                        service="gemini",
                        error_message=str(e.__cause__ or e),
                        correlation_id=correlation_id,
                    )
                await self._audit_logger.log_suggestion_failed(
                    suggestion_type=suggestion_type,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

    async def budget(self):
        records = await self._collections.get_records()
        categories = await self._collections.get_categories()
        return await self._audited(
            "budget_suggestion",
            len(records),
            self._agent.suggest_budget(records, categories),
        )

    async def category(self, label: str):
        categories = await self._collections.get_categories()
        return await self._audited(
            "category_suggestion",
            0,
            self._agent.suggest_category(label, categories),
        )

    async def analysis(self) -> str:
        records = await self._collections.get_records()
        categories = await self._collections.get_categories()
        return await self._audited(
            "spending_analysis",
            len(records),
            self._agent.analyze_spending(records, categories, self._clock.now()),
        )


@dataclass(frozen=True)
class AppComponents:
    records: RecordFlow
    recurring: RecurringFlow
    archive: ArchiveFlow
    debts: DebtFlow
    goals: GoalFlow
    categories: CategoryFlow
    budgets: BudgetFlow
    reports: ReportFlow
    suggestions: SuggestionFlow
    collections: CollectionStore


def create_app_components(
    settings: Optional[Settings] = None,
    clock: Optional[Clock] = None,
    store: Optional[KeyValueStore] = None,
    agent: Optional[SuggestionAgent] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use; loaded from the environment if None
        clock: Clock to use; the system clock if None
        store: Key-value backend; built from storage settings if None
        agent: AI agent; built from Gemini settings if None
        audit_logger: Audit logger; local-only logging if None

    Returns:
        AppComponents with every flow wired to the same store and clock
    """
    settings = settings or get_settings()
    clock = clock or SystemClock()
    storage_settings = settings.storage
    app_settings = settings.app

    if store is None:
        if storage_settings.backend == "memory":
            store = InMemoryKeyValueStore()
        else:
            store = JsonFileKeyValueStore(storage_settings.data_path)

    collections = CollectionStore(store, key_prefix=storage_settings.key_prefix)
    audit_logger = audit_logger or AuditLogger()
    agent = agent or SuggestionAgent(settings=settings.gemini, app_settings=app_settings)

    return AppComponents(
        records=RecordFlow(collections, clock, audit_logger),
        recurring=RecurringFlow(collections, clock, audit_logger, app_settings),
        archive=ArchiveFlow(collections, audit_logger, app_settings),
        debts=DebtFlow(collections, clock, audit_logger),
        goals=GoalFlow(collections, clock, audit_logger),
        categories=CategoryFlow(collections),
        budgets=BudgetFlow(collections),
        reports=ReportFlow(collections, clock, app_settings),
        suggestions=SuggestionFlow(collections, clock, agent, audit_logger),
        collections=collections,
    )
