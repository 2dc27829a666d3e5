"""
Typed Collection Store

Wraps a KeyValueStore with get-all / replace-all access to each
collection the application owns. Each collection lives under one
prefixed key as a JSON list.

DESIGN DECISION: No per-item operations. The application reads a whole
snapshot, computes with the pure core, and writes whole collections back.
With a single writer this keeps every collection internally consistent.
"""

from typing import Any, Sequence

from pydantic import TypeAdapter, ValidationError

from homeledger.models.records import (
    DEFAULT_CATEGORIES,
    Budget,
    Category,
    Debt,
    Goal,
    MonetaryRecord,
    RecurringObligation,
)
from homeledger.services.storage.interface import (
    KeyValueStore,
    SerializationError,
)


RECORDS_KEY = "transactions"
OBLIGATIONS_KEY = "recurring"
CATEGORIES_KEY = "categories"
BUDGETS_KEY = "budgets"
DEBTS_KEY = "debts"
GOALS_KEY = "goals"


class CollectionStore:
    """
    Get-all / replace-all access to the application's collections.
    """

    _records = TypeAdapter(list[MonetaryRecord])
    _obligations = TypeAdapter(list[RecurringObligation])
    _categories = TypeAdapter(list[Category])
    _budgets = TypeAdapter(list[Budget])
    _debts = TypeAdapter(list[Debt])
    _goals = TypeAdapter(list[Goal])

    def __init__(self, store: KeyValueStore, key_prefix: str = "homeledger_"):
        self._store = store
        self._prefix = key_prefix

    def _key(self, name: str) -> str:
        return f"{self._prefix}{name}"

    async def _load(self, name: str, adapter: TypeAdapter, default: Any = None) -> list:
        raw = await self._store.get(self._key(name))
        if raw is None:
            return list(default or [])
        try:
            return adapter.validate_python(raw)
        except ValidationError as e:
            raise SerializationError(
                f"Stored '{self._key(name)}' does not match its schema: {e}"
            )

    async def _replace(self, name: str, adapter: TypeAdapter, items: Sequence) -> None:
        await self._store.set(
            self._key(name),
            adapter.dump_python(list(items), mode="json"),
        )

    async def get_records(self) -> list[MonetaryRecord]:
        return await self._load(RECORDS_KEY, self._records)

    async def replace_records(self, records: Sequence[MonetaryRecord]) -> None:
        await self._replace(RECORDS_KEY, self._records, records)

    async def get_obligations(self) -> list[RecurringObligation]:
        return await self._load(OBLIGATIONS_KEY, self._obligations)

    async def replace_obligations(self, obligations: Sequence[RecurringObligation]) -> None:
        await self._replace(OBLIGATIONS_KEY, self._obligations, obligations)

    async def get_categories(self) -> list[Category]:
        """Stored categories, or the defaults if none were ever saved."""
        return await self._load(CATEGORIES_KEY, self._categories, DEFAULT_CATEGORIES)

    async def replace_categories(self, categories: Sequence[Category]) -> None:
        await self._replace(CATEGORIES_KEY, self._categories, categories)

    async def get_budgets(self) -> list[Budget]:
        return await self._load(BUDGETS_KEY, self._budgets)

    async def replace_budgets(self, budgets: Sequence[Budget]) -> None:
        await self._replace(BUDGETS_KEY, self._budgets, budgets)

    async def get_debts(self) -> list[Debt]:
        return await self._load(DEBTS_KEY, self._debts)

    async def replace_debts(self, debts: Sequence[Debt]) -> None:
        await self._replace(DEBTS_KEY, self._debts, debts)

    async def get_goals(self) -> list[Goal]:
        return await self._load(GOALS_KEY, self._goals)

    async def replace_goals(self, goals: Sequence[Goal]) -> None:
        await self._replace(GOALS_KEY, self._goals, goals)
