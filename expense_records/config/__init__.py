"""Configuration package."""

from expense_records.config.settings import (
    EngineSettings,
    GoogleSheetsSettings,
    LoggingSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "EngineSettings",
    "GoogleSheetsSettings",
    "LoggingSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
