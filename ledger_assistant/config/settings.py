"""
Configuration Management for Ledger Assistant

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The sales engine only has defaults, so it runs with no environment at all;
the external services (Sheets, Gemini) are validated when first accessed.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SalesSettings(BaseSettings):
    """Tuning knobs for matching, pending contexts and margin estimates."""

    model_config = SettingsConfigDict(
        env_prefix="SALES_",
        extra="ignore"
    )

    context_ttl_seconds: float = Field(
        default=300.0,
        gt=0,
        description="How long a pending confirmation or correction stays valid"
    )
    match_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Minimum token-overlap score for a catalog match"
    )
    suggestion_threshold: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Scores must be strictly above this to be suggested"
    )
    max_suggestions: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many alternatives to offer when nothing matches"
    )
    estimated_margin: float = Field(
        default=0.30,
        ge=0.0,
        le=1.0,
        description="Profit share assumed when a product has no cost price"
    )
    catalog_limit: int = Field(
        default=100,
        ge=1,
        description="Maximum catalog entries loaded per lookup"
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
    products_sheet_name: str = Field(
        default="Products",
        description="Name of the sheet holding the product catalog"
    )
    ledger_sheet_name: str = Field(
        default="Ledger",
        description="Name of the sheet for revenue/expense entries"
    )
    sales_sheet_name: str = Field(
        default="Sales",
        description="Name of the sheet for sale detail rows"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class GeminiSettings(BaseSettings):
    """Gemini configuration for the message pre-parser."""

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
        default=512,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
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

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for structured logs"
    )


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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def sales(self) -> SalesSettings:
        return SalesSettings()

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

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus "<name>_error"
    entries describing what is missing. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("sales", "google_sheets", "gemini", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
