"""
AI Suggestion Agent for homeledger

DESIGN DECISION: The AI is an optional collaborator. Nothing in the core
depends on it succeeding, and every failure surfaces as a SuggestionError
carrying a message that can be shown to the user as-is.

CRITICAL BOUNDARIES:
- CAN: Suggest monthly budgets, suggest a category for a label,
  write a short spending analysis
- CANNOT: Change stored data (suggestions are returned, never applied)
- CANNOT: Return a category id that the user does not have
- MUST: Refuse to run on too little data instead of guessing

The LLM only ever sees category names, amounts, dates and labels.
"""

import json
import re
from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import google.generativeai as genai
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from homeledger.aggregation import category_names, resolve_category_name
from homeledger.config import AppSettings, GeminiSettings, get_settings
from homeledger.models.records import (
    Category,
    MonetaryRecord,
    TransactionKind,
)
from homeledger.scheduling import shift_months


_FENCE_RE = re.compile(r"^```(\w*)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)


class SuggestionError(Exception):
    """
    Base exception for AI suggestions.

    `str(error)` is a user-facing message.
    """
    pass


class AIUnavailableError(SuggestionError):
    """No API key is configured, so AI features are disabled."""
    pass


class InsufficientDataError(SuggestionError):
    """Too few records to produce a meaningful suggestion."""

    def __init__(self, message: str, required: int, found: int):
        super().__init__(message)
        self.required = required
        self.found = found


class AIServiceError(SuggestionError):
    """The Gemini call itself failed (network, quota, server error)."""
    pass


class AIResponseError(SuggestionError):
    """Gemini answered, but not in the shape we asked for."""
    pass


class BudgetSuggestion(BaseModel):
    """AI's suggested monthly budget for one category."""

    category: str = Field(..., min_length=1)
    suggested_amount: Decimal = Field(..., ge=0)
    reason: str


class CategorySuggestion(BaseModel):
    """AI's suggested category for a record label."""

    category_id: str
    category_name: str


_BUDGET_LIST = TypeAdapter(list[BudgetSuggestion])


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence if the model added one."""
    text = text.strip()
    match = _FENCE_RE.match(text)
    if match and match.group(2):
        return match.group(2).strip()
    return text


class SuggestionAgent:
    """
    Gemini-backed budget, category and spending-analysis suggestions.

    RESPONSIBILITIES:
    - Check prerequisites (API key, minimum data) before any call
    - Build prompts from records and category names
    - Validate the response shape strictly

    BOUNDARIES:
    - NEVER persists anything
    - NEVER falls back to an invented answer on failure
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        app_settings: Optional[AppSettings] = None,
        model: Optional[Any] = None,
    ):
        """
        Args:
            settings: Gemini settings; loaded from the environment if None
            app_settings: Thresholds and labels; loaded if None
            model: Pre-built model object exposing generate_content_async.
                   Built from settings when None.
        """
        self._settings = settings or get_settings().gemini
        self._app = app_settings or get_settings().app
        self._model = model

    @property
    def is_available(self) -> bool:
        return self._model is not None or self._settings.is_configured

    def _get_model(self):
        """Configure Google Generative AI lazily, on first use."""
        if self._model is None:
            if not self._settings.is_configured:
                raise AIUnavailableError(
                    "AI features are not available right now. Please try again later."
                )
            genai.configure(api_key=self._settings.api_key)
            self._model = genai.GenerativeModel(
                model_name=self._settings.model_name,
                generation_config={
                    "max_output_tokens": self._settings.max_tokens,
                },
            )
        return self._model

    async def _generate(
        self,
        prompt: str,
        failure_message: str,
        generation_config: Optional[dict] = None,
    ) -> str:
        model = self._get_model()
        try:
            if generation_config:
                response = await model.generate_content_async(
                    prompt, generation_config=generation_config
                )
            else:
                response = await model.generate_content_async(prompt)
            return response.text
        except Exception as e:
            raise AIServiceError(failure_message) from e

    def _format_records(
        self,
        records: Sequence[MonetaryRecord],
        categories: Sequence[Category],
        include_label: bool = False,
    ) -> str:
        names = category_names(categories)
        rows = []
        for record in records:
            row = {
                "category": resolve_category_name(
                    names, record.category_id, self._app.uncategorized_label
                ),
                "amount": float(record.amount),
                "date": record.calendar_date.isoformat(),
            }
            if include_label:
                row["description"] = record.label
            rows.append(row)
        return json.dumps(rows, ensure_ascii=False, indent=2)

    async def suggest_budget(
        self,
        records: Sequence[MonetaryRecord],
        categories: Sequence[Category],
    ) -> list[BudgetSuggestion]:
        """
        Suggest a realistic monthly budget per category from past expenses.

        Raises:
            AIUnavailableError: no API key configured
            InsufficientDataError: fewer expense records than configured minimum
            AIServiceError: the Gemini call failed
            AIResponseError: the answer was not a list of suggestions
        """
        self._get_model()

        expenses = [r for r in records if r.kind == TransactionKind.EXPENSE]
        required = self._app.min_expenses_for_budget_suggestion
        if len(expenses) < required:
            raise InsufficientDataError(
                f"You need at least {required} expense transactions "
                f"to get a smart budget suggestion.",
                required=required,
                found=len(expenses),
            )

        prompt = f"""You are a friendly, expert personal finance assistant.
Analyse the following expense data and suggest a realistic monthly budget.

Data:
{self._format_records(expenses, categories)}

Task:
1. Analyse the spending patterns.
2. Suggest a reasonable monthly budget for each category.
3. Give a short reason for each suggestion (e.g. "in line with your average spending" or "room to save here").
4. Respond with JSON only, no extra text and no markdown.
5. The output must be an array of objects, each with the keys "category" (string), "suggested_amount" (number), "reason" (string).

Example:
[
  {{"category": "Food & Drink", "suggested_amount": 1500, "reason": "In line with your current average, with a little room to improve."}}
]"""

        text = await self._generate(
            prompt,
            "Something went wrong while contacting the AI assistant. Please try again later.",
            generation_config={
                "response_mime_type": "application/json",
                "temperature": self._settings.budget_temperature,
            },
        )

        try:
            return _BUDGET_LIST.validate_json(strip_code_fence(text))
        except ValidationError as e:
            raise AIResponseError("The AI response had an invalid format.") from e

    async def suggest_category(
        self,
        label: str,
        categories: Sequence[Category],
    ) -> CategorySuggestion:
        """
        Pick the most appropriate existing category for a record label.

        Raises:
            AIUnavailableError: no API key configured
            AIServiceError: the Gemini call failed
            AIResponseError: the model answered with an unknown category id
        """
        self._get_model()

        categories_for_prompt = [{"id": c.id, "name": c.name} for c in categories]
        prompt = f"""Based on the transaction description, which category is the most appropriate?
Description: "{label}"

Available Categories:
{json.dumps(categories_for_prompt, ensure_ascii=False)}

Respond with ONLY the 'id' of the most relevant category. For example: "cat-3". Do not add any other text, explanation or markdown."""

        text = await self._generate(prompt, "Could not get a suggestion from the AI assistant.")
        category_id = text.strip().replace('"', "")

        names = category_names(categories)
        if category_id not in names:
            raise AIResponseError("Could not get a suggestion from the AI assistant.")
        return CategorySuggestion(category_id=category_id, category_name=names[category_id])

    async def analyze_spending(
        self,
        records: Sequence[MonetaryRecord],
        categories: Sequence[Category],
        now: datetime,
    ) -> str:
        """
        Short, plain-text analysis of the last month's expenses.

        Args:
            now: Current instant; only expenses from one month before it count

        Raises:
            AIUnavailableError: no API key configured
            InsufficientDataError: too few expenses in the last month
            AIServiceError: the Gemini call failed
        """
        self._get_model()

        since = shift_months(now, -1)
        expenses = [
            r for r in records
            if r.kind == TransactionKind.EXPENSE and r.timestamp >= since
        ]
        required = self._app.min_expenses_for_spending_analysis
        if len(expenses) < required:
            raise InsufficientDataError(
                f"You need at least {required} expense transactions in the last "
                f"month to get a smart analysis.",
                required=required,
                found=len(expenses),
            )

        prompt = f"""You are a friendly, expert financial advisor.
Analyse the user's expenses for the last month and give a short, useful analysis.

User data (last 30 days):
{self._format_records(expenses, categories, include_label=True)}

Task:
1. Start with a friendly greeting.
2. Analyse the overall spending pattern, focusing on the two or three largest categories.
3. Give 2-3 practical, specific tips the user can apply. Keep them positive and encouraging.
4. End with an encouraging note.
5. Plain text only (no Markdown), about 100-150 words."""

        return await self._generate(
            prompt,
            "Something went wrong while analysing your spending. Please try again.",
            generation_config={"temperature": self._settings.analysis_temperature},
        )
