"""
Configuration Management for homeledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The pure core (scheduler, aggregator) never reads settings; only the
orchestrator, the storage adapters and the AI agent do, and they accept
explicit values so tests never depend on the environment.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="Gemini API key; AI features are disabled when unset"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    budget_temperature: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Temperature for budget suggestions"
    )
    analysis_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Temperature for free-text spending analysis"
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


class StorageSettings(BaseSettings):
    """Local key-value storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        extra="ignore"
    )

    backend: Literal["memory", "json"] = Field(
        default="json",
        description="Which key-value backend to use"
    )
    data_path: Path = Field(
        default=Path("homeledger_data.json"),
        description="File used by the json backend"
    )
    key_prefix: str = Field(
        default="homeledger_",
        description="Prefix applied to every storage key"
    )

    @field_validator('data_path')
    @classmethod
    def validate_data_path(cls, v: Path) -> Path:
        """Reject paths that point at a directory."""
        if v.exists() and v.is_dir():
            raise ValueError(f"Storage path {v} is a directory, expected a file")
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    uncategorized_label: str = Field(
        default="Uncategorized",
        min_length=1,
        description="Label used when a record's category no longer exists"
    )
    budget_alert_threshold: float = Field(
        default=80.0,
        gt=0.0,
        description="Percent of a budget spent that raises an alert"
    )
    upcoming_window_days: int = Field(
        default=30,
        ge=1,
        description="How far ahead upcoming obligations are listed"
    )
    history_months: int = Field(
        default=12,
        ge=1,
        le=120,
        description="Months shown in the income/expense history"
    )

    # AI minimum data requirements
    min_expenses_for_budget_suggestion: int = Field(default=5, ge=1)
    min_expenses_for_spending_analysis: int = Field(default=10, ge=1)


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("gemini", "storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    # An unset key is valid configuration, it just disables AI features
    results["ai_enabled"] = results["gemini"] and settings.gemini.is_configured
    return results
