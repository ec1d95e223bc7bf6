"""
Configuration Management for Subtrack

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here: the hosting platform supplies the
app identifier, the Firebase project, the Gemini key and an optional
initial auth token, and everything is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FirebaseSettings(BaseSettings):
    """Firebase (Auth + Firestore) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FIREBASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    project_id: str = Field(
        ...,
        description="Google Cloud / Firebase project ID"
    )
    web_api_key: str = Field(
        ...,
        description="Firebase Web API key used for Identity Toolkit sign-in"
    )
    credentials_path: Optional[str] = Field(
        default=None,
        description=(
            "Path to a service account JSON. "
            "If unset, application-default credentials are used."
        )
    )
    auth_base_url: str = Field(
        default="https://identitytoolkit.googleapis.com/v1",
        description="Identity Toolkit REST base URL"
    )
    auth_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Timeout for sign-in requests"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: Optional[str]) -> Optional[str]:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if v and not Path(v).exists():
            import warnings
            warnings.warn(
                f"Firebase credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class GeminiSettings(BaseSettings):
    """Gemini text-generation endpoint configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        default="",
        description="Gemini API key (sent as the `key` query parameter)"
    )
    model_name: str = Field(
        default="gemini-2.5-flash-preview-05-20",
        description="Gemini model to use"
    )
    base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Generative Language API base URL"
    )
    timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for a single report request"
    )

    @property
    def endpoint(self) -> str:
        """Full generateContent URL (without the key)."""
        return f"{self.base_url.rstrip('/')}/models/{self.model_name}:generateContent"


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

    # Platform-injected values
    app_id: str = Field(
        default="default-app-id",
        description="Application identifier used in the document path"
    )
    initial_auth_token: Optional[str] = Field(
        default=None,
        description="Custom token to sign in with; anonymous sign-in if unset"
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
    log_level: str = Field(
        default="INFO",
        description="Standard library logging level"
    )
    use_cloud_backend: bool = Field(
        default=True,
        description="Use Firebase; False runs entirely in memory"
    )

    # Display
    currency_symbol: str = Field(
        default="₹",
        max_length=5,
        description="Symbol shown in front of every amount"
    )
    refresh_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        le=60,
        description="How often the page polls the live query"
    )

    @field_validator('initial_auth_token')
    @classmethod
    def blank_token_is_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty token as absent."""
        if v is not None and not v.strip():
            return None
        return v

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()


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
    def firebase(self) -> FirebaseSettings:
        return FirebaseSettings()

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

    Returns a dict of {setting_name: is_valid}, plus a
    `<name>_error` entry for each failure.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.firebase
        results["firebase"] = True
    except Exception as e:
        results["firebase"] = False
        results["firebase_error"] = str(e)

    try:
        gemini = settings.gemini
        if not gemini.api_key:
            raise ValueError("GEMINI_API_KEY is not set")
        results["gemini"] = True
    except Exception as e:
        results["gemini"] = False
        results["gemini_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
