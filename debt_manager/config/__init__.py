"""Configuration package."""

from debt_manager.config.settings import (
    AppSettings,
    Settings,
    SmtpSettings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "Settings",
    "SmtpSettings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
