"""AI Agents package."""

from homeledger.agents.ai_agents import (
    AIResponseError,
    AIServiceError,
    AIUnavailableError,
    BudgetSuggestion,
    CategorySuggestion,
    InsufficientDataError,
    SuggestionAgent,
    SuggestionError,
    strip_code_fence,
)

__all__ = [
    "AIResponseError",
    "AIServiceError",
    "AIUnavailableError",
    "BudgetSuggestion",
    "CategorySuggestion",
    "InsufficientDataError",
    "SuggestionAgent",
    "SuggestionError",
    "strip_code_fence",
]
