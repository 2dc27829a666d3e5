"""
Integration tests for the orchestrator flows.

In-memory storage, a fixed clock and a mocked AI model.
"""

import pytest
from datetime import date, datetime, time
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from homeledger.agents import AIServiceError, SuggestionAgent
from homeledger.audit import AuditLogger
from homeledger.config import AppSettings, GeminiSettings
from homeledger.models import (
    DEBT_PAYMENTS_CATEGORY_ID,
    DEFAULT_CATEGORIES,
    SAVINGS_CATEGORY_ID,
    AuditEventType,
    Budget,
    Category,
    Debt,
    Frequency,
    TransactionKind,
)
from homeledger.orchestrator import (
    ArchiveFlow,
    BudgetFlow,
    CategoryFlow,
    DebtFlow,
    GoalFlow,
    RecordFlow,
    RecurringFlow,
    ReportFlow,
    SuggestionFlow,
    create_app_components,
)
from homeledger.scheduling import ConfigurationError
from homeledger.services import (
    CollectionStore,
    FixedClock,
    InMemoryAuditStorage,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    NotFoundError,
)


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 3, 1, 10, 0))


@pytest.fixture
def collections():
    return CollectionStore(InMemoryKeyValueStore())


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(storage=audit_storage)


@pytest.fixture
def app_settings():
    return AppSettings()


async def event_types(audit_storage):
    return [e.event_type for e in reversed(await audit_storage.get_recent_events())]


class TestRecordFlow:
    """Tests for adding, deleting and filtering records."""

    @pytest.mark.asyncio
    async def test_add_record_uses_clock(self, collections, clock, audit_logger, audit_storage):
        """Test that a record without a timestamp is stamped now."""
        flow = RecordFlow(collections, clock, audit_logger)

        record = await flow.add_record(TransactionKind.EXPENSE, Decimal("9.99"), "cat-1", "Lunch")

        assert record.timestamp == clock.now()
        assert record.id.startswith("txn-")
        assert await collections.get_records() == [record]
        assert await event_types(audit_storage) == [AuditEventType.RECORD_ADDED]

    @pytest.mark.asyncio
    async def test_delete_record(self, collections, clock):
        """Test deletion of known and unknown ids."""
        flow = RecordFlow(collections, clock)
        record = await flow.add_record(TransactionKind.INCOME, Decimal("100"), "cat-7")

        await flow.delete_record(record.id)
        assert await collections.get_records() == []
        with pytest.raises(NotFoundError):
            await flow.delete_record(record.id)

    @pytest.mark.asyncio
    async def test_filtered_totals(self, collections, clock):
        """Test totals over a search-filtered view, newest first."""
        flow = RecordFlow(collections, clock)
        await flow.add_record(TransactionKind.EXPENSE, Decimal("5"), "cat-1", "Coffee",
                              timestamp=datetime(2024, 2, 1))
        await flow.add_record(TransactionKind.EXPENSE, Decimal("7"), "cat-1", "coffee beans",
                              timestamp=datetime(2024, 2, 2))
        await flow.add_record(TransactionKind.EXPENSE, Decimal("50"), "cat-2", "Train")

        records, totals = await flow.filtered_totals(search="coffee")

        assert [r.label for r in records] == ["coffee beans", "Coffee"]
        assert totals.expense_total == Decimal("12")
        assert totals.net == Decimal("-12")


class TestRecurringFlow:
    """Tests for the recurring obligation lifecycle."""

    @pytest.mark.asyncio
    async def test_create_schedules_from_anchor(self, collections, clock, app_settings):
        """Test that a new obligation's due date is caught up."""
        flow = RecurringFlow(collections, clock, app_settings=app_settings)

        obligation = await flow.save_obligation(
            TransactionKind.EXPENSE, Decimal("1200"), "cat-3", Frequency.MONTHLY,
            anchor_date=date(2024, 1, 31), label="Rent",
        )

        assert obligation.next_due_date == date(2024, 3, 29)
        assert await collections.get_obligations() == [obligation]

    @pytest.mark.asyncio
    async def test_edit_replaces_and_reschedules(self, collections, clock, app_settings):
        """Test that editing keeps the id and recomputes the due date."""
        flow = RecurringFlow(collections, clock, app_settings=app_settings)
        created = await flow.save_obligation(
            TransactionKind.EXPENSE, Decimal("10"), "cat-5", Frequency.MONTHLY,
            anchor_date=date(2024, 2, 10),
        )

        edited = await flow.save_obligation(
            TransactionKind.EXPENSE, Decimal("12"), "cat-5", "weekly",
            anchor_date=date(2024, 2, 10), obligation_id=created.id,
        )

        assert edited.id == created.id
        assert edited.frequency == Frequency.WEEKLY
        assert edited.next_due_date == date(2024, 3, 2)
        assert await collections.get_obligations() == [edited]

    @pytest.mark.asyncio
    async def test_edit_unknown_raises(self, collections, clock, app_settings):
        """Test editing an obligation that does not exist."""
        flow = RecurringFlow(collections, clock, app_settings=app_settings)
        with pytest.raises(NotFoundError):
            await flow.save_obligation(
                TransactionKind.EXPENSE, Decimal("1"), "cat-1", Frequency.DAILY,
                anchor_date=date(2024, 3, 1), obligation_id="rec-missing",
            )

    @pytest.mark.asyncio
    async def test_unknown_frequency_raises(self, collections, clock, app_settings):
        """Test that an unknown frequency is a configuration error."""
        flow = RecurringFlow(collections, clock, app_settings=app_settings)
        with pytest.raises(ConfigurationError):
            await flow.save_obligation(
                TransactionKind.EXPENSE, Decimal("1"), "cat-1", "hourly",
                anchor_date=date(2024, 3, 1),
            )

    @pytest.mark.asyncio
    async def test_fire(self, collections, clock, audit_logger, audit_storage, app_settings):
        """Test that firing adds a record and moves the schedule."""
        flow = RecurringFlow(collections, clock, audit_logger, app_settings)
        obligation = await flow.save_obligation(
            TransactionKind.EXPENSE, Decimal("1200"), "cat-3", Frequency.MONTHLY,
            anchor_date=date(2024, 3, 1), label="Rent",
        )
        assert [o.id for o in await flow.due()] == [obligation.id]

        record, updated = await flow.fire(obligation.id)

        assert record.label == "(recurring) Rent"
        assert record.timestamp == clock.now()
        assert updated.next_due_date == date(2024, 4, 1)
        assert await collections.get_records() == [record]
        assert await collections.get_obligations() == [updated]
        assert await flow.due() == []
        assert await event_types(audit_storage) == [
            AuditEventType.OBLIGATION_SCHEDULED,
            AuditEventType.OBLIGATION_FIRED,
        ]

    @pytest.mark.asyncio
    async def test_fire_unknown_raises(self, collections, clock, app_settings):
        """Test that firing an unknown id writes nothing."""
        flow = RecurringFlow(collections, clock, app_settings=app_settings)
        with pytest.raises(NotFoundError):
            await flow.fire("rec-missing")
        assert await collections.get_records() == []

    @pytest.mark.asyncio
    async def test_upcoming(self, collections, clock, app_settings):
        """Test the upcoming window from settings."""
        flow = RecurringFlow(collections, clock, app_settings=app_settings)
        soon = await flow.save_obligation(
            TransactionKind.EXPENSE, Decimal("1"), "cat-1", Frequency.YEARLY,
            anchor_date=date(2024, 3, 20),
        )
        await flow.save_obligation(
            TransactionKind.EXPENSE, Decimal("1"), "cat-1", Frequency.YEARLY,
            anchor_date=date(2024, 6, 1),
        )

        assert [o.id for o in await flow.upcoming()] == [soon.id]


class TestArchiveFlow:
    """Tests for archiving a date range."""

    @pytest.mark.asyncio
    async def test_preview_writes_nothing(self, collections, clock, app_settings):
        """Test that preview leaves storage alone."""
        await RecordFlow(collections, clock).add_record(
            TransactionKind.EXPENSE, Decimal("1"), "cat-1", timestamp=datetime(2024, 1, 2)
        )
        before = await collections.get_records()

        result = await ArchiveFlow(collections, app_settings=app_settings).preview(
            date(2024, 1, 1), date(2024, 1, 31)
        )

        assert result.record_count == 1
        assert await collections.get_records() == before

    @pytest.mark.asyncio
    async def test_archive(self, collections, clock, audit_logger, audit_storage, app_settings):
        """Test that January collapses into two summaries."""
        flow = RecordFlow(collections, clock)
        for amount, kind, category, day in [
            ("100", TransactionKind.EXPENSE, "cat-1", 5),
            ("50", TransactionKind.EXPENSE, "cat-1", 20),
            ("2000", TransactionKind.INCOME, "cat-7", 1),
        ]:
            await flow.add_record(kind, Decimal(amount), category,
                                  timestamp=datetime(2024, 1, day))
        kept = await flow.add_record(TransactionKind.EXPENSE, Decimal("9"), "cat-1",
                                     timestamp=datetime(2024, 2, 1))

        outcome = await ArchiveFlow(collections, audit_logger, app_settings).archive(
            date(2024, 1, 1), date(2024, 1, 31)
        )

        assert outcome.archived is True
        assert outcome.message == "Archived 3 transactions successfully."
        stored = await collections.get_records()
        assert kept in stored
        summaries = [r for r in stored if r.id != kept.id]
        assert sorted((r.kind.value, r.amount) for r in summaries) == [
            ("expense", Decimal("150")),
            ("income", Decimal("2000")),
        ]
        assert all(
            r.timestamp == datetime.combine(date(2024, 1, 31), time.max) for r in summaries
        )
        assert AuditEventType.ARCHIVE_COMPLETED in await event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_archive_empty_range(self, collections, clock, audit_logger, audit_storage,
                                       app_settings):
        """Test that an empty range changes nothing."""
        record = await RecordFlow(collections, clock).add_record(
            TransactionKind.EXPENSE, Decimal("1"), "cat-1", timestamp=datetime(2024, 2, 1)
        )

        outcome = await ArchiveFlow(collections, audit_logger, app_settings).archive(
            date(2023, 1, 1), date(2023, 12, 31)
        )

        assert outcome.archived is False
        assert "no transactions" in outcome.message
        assert await collections.get_records() == [record]
        assert await event_types(audit_storage) == [AuditEventType.ARCHIVE_EMPTY]

    @pytest.mark.asyncio
    async def test_archive_uses_stored_category_names(self, collections, clock, app_settings):
        """Test summary labels use the user's category names."""
        await collections.replace_categories([Category(id="cat-1", name="Groceries")])
        await RecordFlow(collections, clock).add_record(
            TransactionKind.EXPENSE, Decimal("3"), "cat-1", timestamp=datetime(2024, 1, 2)
        )

        outcome = await ArchiveFlow(collections, app_settings=app_settings).archive(
            date(2024, 1, 1), date(2024, 1, 31)
        )

        assert outcome.result.summary_records[0].label == (
            'Expense summary "Groceries" for 2024-01-01 to 2024-01-31'
        )

    @pytest.mark.asyncio
    async def test_inverted_range_raises_before_writing(self, collections, clock, audit_logger,
                                                        audit_storage, app_settings):
        """Test that an end date before the start date is rejected with nothing changed."""
        record = await RecordFlow(collections, clock).add_record(
            TransactionKind.EXPENSE, Decimal("4"), "cat-1", timestamp=datetime(2024, 1, 10)
        )

        with pytest.raises(ValueError, match="Range end cannot be before start"):
            await ArchiveFlow(collections, audit_logger, app_settings).archive(
                date(2024, 1, 31), date(2024, 1, 1)
            )

        assert await collections.get_records() == [record]
        assert await event_types(audit_storage) == []


class TestDebtFlow:
    """Tests for debt payments."""

    @pytest.fixture
    def debt(self):
        return Debt(
            id="debt-1",
            name="Car loan",
            total_amount=Decimal("1000"),
            remaining_amount=Decimal("150"),
            monthly_payment=Decimal("100"),
            next_payment_date=date(2024, 1, 31),
        )

    @pytest.fixture
    def collections(self, debt):
        return CollectionStore(InMemoryKeyValueStore({
            "homeledger_debts": [debt.model_dump(mode="json")],
        }))

    @pytest.mark.asyncio
    async def test_payment_with_expense(self, collections, clock, debt):
        """Test remaining amount, next date and the expense record."""
        flow = DebtFlow(collections, clock)

        updated, record = await flow.make_payment(debt.id, Decimal("100"))

        assert updated.remaining_amount == Decimal("50")
        assert updated.next_payment_date == date(2024, 2, 29)
        assert record.category_id == DEBT_PAYMENTS_CATEGORY_ID
        assert record.kind == TransactionKind.EXPENSE
        assert record.label == "Debt payment: Car loan"
        assert await collections.get_debts() == [updated]
        assert await collections.get_records() == [record]

    @pytest.mark.asyncio
    async def test_overpayment_floors_at_zero(self, collections, clock, debt):
        """Test that remaining never goes negative."""
        updated, record = await DebtFlow(collections, clock).make_payment(
            debt.id, Decimal("500"), create_expense=False
        )
        assert updated.remaining_amount == Decimal("0")
        assert updated.is_settled is True
        assert record is None
        assert await collections.get_records() == []

    @pytest.mark.asyncio
    async def test_missing_debt_category(self, collections, clock, debt):
        """Test that nothing changes without the debt payments category."""
        await collections.replace_categories([Category(id="cat-1", name="Food")])
        with pytest.raises(NotFoundError):
            await DebtFlow(collections, clock).make_payment(debt.id, Decimal("10"))
        assert await collections.get_debts() == [debt]

    @pytest.mark.asyncio
    async def test_invalid_amount(self, collections, clock, debt):
        """Test that a non-positive payment is rejected."""
        with pytest.raises(ValueError):
            await DebtFlow(collections, clock).make_payment(debt.id, Decimal("0"))

    @pytest.mark.asyncio
    async def test_unknown_debt(self, collections, clock):
        """Test paying a debt that does not exist."""
        with pytest.raises(NotFoundError):
            await DebtFlow(collections, clock).make_payment("debt-x", Decimal("1"))


class TestGoalFlow:
    """Tests for savings goals."""

    @pytest.mark.asyncio
    async def test_create_and_delete(self, collections, clock):
        """Test that goals are stored and removed."""
        flow = GoalFlow(collections, clock)

        goal = await flow.create_goal("Holiday", Decimal("1500"))

        assert goal.id.startswith("goal-")
        assert goal.current_amount == Decimal("0")
        assert await collections.get_goals() == [goal]

        await flow.delete_goal(goal.id)
        assert await collections.get_goals() == []

    @pytest.mark.asyncio
    async def test_create_rejects_zero_target(self, collections, clock):
        """Test that a goal needs a positive target."""
        with pytest.raises(ValueError):
            await GoalFlow(collections, clock).create_goal("Holiday", Decimal("0"))
        assert await collections.get_goals() == []

    @pytest.mark.asyncio
    async def test_delete_unknown_raises(self, collections, clock):
        """Test deleting a goal that does not exist."""
        with pytest.raises(NotFoundError):
            await GoalFlow(collections, clock).delete_goal("goal-x")

    @pytest.mark.asyncio
    async def test_add_funds_with_expense(self, collections, clock, audit_logger, audit_storage):
        """Test the new saved total and the savings expense record."""
        flow = GoalFlow(collections, clock, audit_logger)
        goal = await flow.create_goal("Holiday", Decimal("1000"))

        updated, record = await flow.add_funds(goal.id, Decimal("250"))

        assert updated.current_amount == Decimal("250")
        assert updated.progress == 25.0
        assert record.kind == TransactionKind.EXPENSE
        assert record.category_id == SAVINGS_CATEGORY_ID
        assert record.amount == Decimal("250")
        assert record.label == "Added to goal: Holiday"
        assert record.timestamp == clock.now()
        assert await collections.get_goals() == [updated]
        assert await collections.get_records() == [record]
        assert await event_types(audit_storage) == [AuditEventType.GOAL_FUNDS_ADDED]

    @pytest.mark.asyncio
    async def test_add_funds_without_expense(self, collections, clock):
        """Test that the record can be skipped."""
        flow = GoalFlow(collections, clock)
        goal = await flow.create_goal("Holiday", Decimal("1000"))

        updated, record = await flow.add_funds(goal.id, Decimal("40"), create_expense=False)

        assert updated.current_amount == Decimal("40")
        assert record is None
        assert await collections.get_records() == []

    @pytest.mark.asyncio
    async def test_missing_savings_category(self, collections, clock):
        """Test that nothing changes without the savings category."""
        flow = GoalFlow(collections, clock)
        goal = await flow.create_goal("Holiday", Decimal("1000"))
        await collections.replace_categories([Category(id="cat-1", name="Food")])

        with pytest.raises(NotFoundError):
            await flow.add_funds(goal.id, Decimal("10"))

        assert await collections.get_goals() == [goal]
        assert await collections.get_records() == []

    @pytest.mark.asyncio
    async def test_invalid_amount(self, collections, clock):
        """Test that a non-positive contribution is rejected."""
        flow = GoalFlow(collections, clock)
        goal = await flow.create_goal("Holiday", Decimal("1000"))
        with pytest.raises(ValueError):
            await flow.add_funds(goal.id, Decimal("-5"))

    @pytest.mark.asyncio
    async def test_unknown_goal(self, collections, clock):
        """Test adding funds to a goal that does not exist."""
        with pytest.raises(NotFoundError):
            await GoalFlow(collections, clock).add_funds("goal-x", Decimal("1"))


class TestCategoryFlow:
    """Tests for managing categories."""

    @pytest.mark.asyncio
    async def test_add_category(self, collections):
        """Test that a new category is appended to the defaults."""
        category = await CategoryFlow(collections).add_category("Pets")

        stored = await collections.get_categories()
        assert category.id.startswith("cat-")
        assert category.name == "Pets"
        assert stored[-1] == category
        assert len(stored) == len(DEFAULT_CATEGORIES) + 1

    @pytest.mark.asyncio
    async def test_delete_category(self, collections):
        """Test that a category is removed by id."""
        await CategoryFlow(collections).delete_category("cat-5")
        assert "cat-5" not in [c.id for c in await collections.get_categories()]

    @pytest.mark.asyncio
    async def test_delete_unknown_raises(self, collections):
        """Test deleting a category that does not exist."""
        with pytest.raises(NotFoundError):
            await CategoryFlow(collections).delete_category("cat-x")

    @pytest.mark.asyncio
    async def test_move_category(self, collections):
        """Test reordering categories."""
        await collections.replace_categories([
            Category(id="a", name="A"),
            Category(id="b", name="B"),
            Category(id="c", name="C"),
        ])

        ordered = await CategoryFlow(collections).move_category(2, 0)

        assert [c.id for c in ordered] == ["c", "a", "b"]
        assert [c.id for c in await collections.get_categories()] == ["c", "a", "b"]

    @pytest.mark.asyncio
    async def test_move_out_of_range(self, collections):
        """Test that a bad position is rejected."""
        with pytest.raises(ValueError, match="out of range"):
            await CategoryFlow(collections).move_category(0, 99)


class TestBudgetFlow:
    """Tests for saving budgets."""

    @pytest.mark.asyncio
    async def test_save_budgets_drops_zero_amounts(self, collections):
        """Test that only positive budgets are stored."""
        saved = await BudgetFlow(collections).save_budgets({
            "cat-1": Decimal("300"),
            "cat-2": Decimal("0"),
            "cat-4": Decimal("120.50"),
        })

        assert saved == [
            Budget(category_id="cat-1", amount=Decimal("300")),
            Budget(category_id="cat-4", amount=Decimal("120.50")),
        ]
        assert await collections.get_budgets() == saved

    @pytest.mark.asyncio
    async def test_save_replaces_previous(self, collections):
        """Test that saving clears budgets not in the new mapping."""
        await collections.replace_budgets([Budget(category_id="cat-6", amount=Decimal("50"))])

        await BudgetFlow(collections).save_budgets({"cat-1": Decimal("10")})

        assert [b.category_id for b in await collections.get_budgets()] == ["cat-1"]


class TestReportFlow:
    """Tests for report views over stored data."""

    @pytest.mark.asyncio
    async def test_budget_alerts(self, collections, clock, app_settings):
        """Test alerts from stored budgets and records."""
        await collections.replace_budgets([Budget(category_id="cat-1", amount=Decimal("100"))])
        await RecordFlow(collections, clock).add_record(
            TransactionKind.EXPENSE, Decimal("85"), "cat-1"
        )
        flow = ReportFlow(collections, clock, app_settings)

        alerts = await flow.budget_alerts()
        assert [(a.category_name, a.progress) for a in alerts] == [("Food & Drink", 85)]
        assert len(await flow.history()) == app_settings.history_months
        assert len(await flow.last_days()) == 7
        assert [r.amount for r in await flow.top_expenses()] == [Decimal("85")]
        assert await flow.breakdown(date(2024, 3, 1), date(2024, 3, 31)) == [
            ("Food & Drink", Decimal("85")),
        ]


class TestSuggestionFlow:
    """Tests for audited AI suggestions."""

    @pytest.mark.asyncio
    async def test_failure_is_audited_and_reraised(self, collections, clock, audit_logger,
                                                   audit_storage):
        """Test that service errors are logged and propagate."""
        model = MagicMock()
        model.generate_content_async = AsyncMock(side_effect=RuntimeError("boom"))
        agent = SuggestionAgent(
            settings=GeminiSettings(api_key=None), app_settings=AppSettings(), model=model
        )
        flow = SuggestionFlow(collections, clock, agent, audit_logger)

        with pytest.raises(AIServiceError):
            await flow.category("Metro card")

        assert await event_types(audit_storage) == [
            AuditEventType.SUGGESTION_REQUESTED,
            AuditEventType.EXTERNAL_SERVICE_ERROR,
            AuditEventType.SUGGESTION_FAILED,
        ]

    @pytest.mark.asyncio
    async def test_category(self, collections, clock):
        """Test a successful suggestion against default categories."""
        model = MagicMock()
        model.generate_content_async = AsyncMock(return_value=SimpleNamespace(text="cat-6"))
        agent = SuggestionAgent(
            settings=GeminiSettings(api_key=None), app_settings=AppSettings(), model=model
        )

        suggestion = await SuggestionFlow(collections, clock, agent).category("Pharmacy")

        assert suggestion.category_name == "Health"


class TestCreateAppComponents:
    """Tests for component wiring."""

    @pytest.mark.asyncio
    async def test_explicit_store(self, clock):
        """Test that all flows share the given store."""
        store = InMemoryKeyValueStore()
        components = create_app_components(clock=clock, store=store)

        await components.records.add_record(TransactionKind.EXPENSE, Decimal("1"), "cat-1")

        assert len(await components.collections.get_records()) == 1
        assert await store.keys() == ["homeledger_transactions"]

    @pytest.mark.asyncio
    async def test_goal_category_and_budget_flows_share_store(self, clock):
        """Test the goal, category and budget flows are wired to the same store."""
        components = create_app_components(clock=clock, store=InMemoryKeyValueStore())

        goal = await components.goals.create_goal("Bike", Decimal("400"))
        await components.goals.add_funds(goal.id, Decimal("100"))
        await components.budgets.save_budgets({SAVINGS_CATEGORY_ID: Decimal("100")})
        await components.categories.add_category("Pets")

        progress = await components.reports.budget_progress()
        assert [(row.category_id, row.spent) for row in progress] == [
            (SAVINGS_CATEGORY_ID, Decimal("100")),
        ]

    def test_json_backend_from_settings(self, tmp_path, monkeypatch, clock):
        """Test that storage settings select the JSON file backend."""
        from homeledger.config import get_settings

        monkeypatch.setenv("STORAGE_BACKEND", "json")
        monkeypatch.setenv("STORAGE_DATA_PATH", str(tmp_path / "ledger.json"))
        get_settings.cache_clear()
        try:
            components = create_app_components(clock=clock)
        finally:
            get_settings.cache_clear()

        store = components.collections._store
        assert isinstance(store, JsonFileKeyValueStore)
        assert store.path == tmp_path / "ledger.json"
