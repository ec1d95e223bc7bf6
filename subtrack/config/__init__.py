"""Configuration package."""

from subtrack.config.settings import (
    AppSettings,
    FirebaseSettings,
    GeminiSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "FirebaseSettings",
    "GeminiSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
