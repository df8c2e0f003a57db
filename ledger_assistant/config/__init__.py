"""Configuration package."""

from ledger_assistant.config.settings import (
    AppSettings,
    GeminiSettings,
    GoogleSheetsSettings,
    SalesSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GeminiSettings",
    "GoogleSheetsSettings",
    "SalesSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
