"""
Configuration Management for SmartFi

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

import warnings
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from smartfi.models.ledger import Currency


class ExchangeRateSettings(BaseSettings):
    """USD→COP exchange rate source configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EXCHANGE_RATE_",
        extra="ignore"
    )

    api_url: str = Field(
        default="https://open.er-api.com/v6/latest/USD",
        description="Endpoint returning USD-based rates"
    )
    refresh_interval_seconds: int = Field(
        default=3600,
        ge=60,
        description="How often the rate is refreshed"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="HTTP timeout for a single fetch"
    )
    default_usd_to_cop: float = Field(
        default=4000.0,
        gt=0,
        description="Rate used until the first successful fetch"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    accounts_sheet_name: str = Field(default="Accounts")
    groups_sheet_name: str = Field(default="Groups")
    transactions_sheet_name: str = Field(default="Transactions")
    settings_sheet_name: str = Field(default="Settings")
    audit_sheet_name: str = Field(default="AuditLog")

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing file only warns; containers often mount it after import."""
        if not Path(v).exists():
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
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
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
    )
    max_transactions_in_prompt: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Most recent transactions sent for analysis"
    )


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

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Ledger
    project_start_date: datetime = Field(
        default=datetime(2025, 12, 31, tzinfo=timezone.utc),
        description="First day of the history chart and the ALL window"
    )
    base_currency: Currency = Field(
        default=Currency.COP,
        description="Currency every aggregate is reported in"
    )
    load_transactions_since_project_start: bool = Field(
        default=True,
        description="Drop transactions older than the project start on load"
    )

    @field_validator('project_start_date')
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Naive start dates are read as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def exchange_rate(self) -> ExchangeRateSettings:
        return ExchangeRateSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
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

    sections = {
        "exchange_rate": lambda: settings.exchange_rate,
        "google_sheets": lambda: settings.google_sheets,
        "gemini": lambda: settings.gemini,
        "app": lambda: settings.app,
    }
    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except ValidationError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
