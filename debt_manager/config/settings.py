"""
Configuration Management for Kindergarten Debt Manager

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Local persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DEBT_MANAGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding one JSON file per storage slot"
    )
    audit_log_file: str = Field(
        default="audit.jsonl",
        description="File name (inside data_dir) of the append-only audit log"
    )

    @property
    def audit_log_path(self) -> Path:
        """Full path of the audit log."""
        return self.data_dir / self.audit_log_file


class SmtpSettings(BaseSettings):
    """
    Outbound mail relay configuration.

    The relay is considered configured only when host, user and
    password are all present.
    """

    model_config = SettingsConfigDict(
        env_prefix="SMTP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True
    )

    host: Optional[str] = Field(
        default=None,
        description="SMTP server host name"
    )
    port: int = Field(
        default=587,
        ge=1,
        le=65535,
        description="SMTP server port (465 means implicit TLS)"
    )
    user: Optional[str] = Field(
        default=None,
        description="SMTP login, also used as the sender address"
    )
    password: Optional[str] = Field(
        default=None,
        validation_alias="SMTP_PASS",
        description="SMTP password"
    )
    timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        le=120,
        description="Upper bound for a single relay attempt"
    )
    admin_email: Optional[str] = Field(
        default=None,
        validation_alias="ADMIN_EMAIL",
        description="Default recipient; when set, the request recipient is ignored"
    )

    @field_validator("host", "user", "password", "admin_email")
    @classmethod
    def blank_is_unset(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty environment values as missing."""
        if v is not None and not v.strip():
            return None
        return v

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.user and self.password)

    @property
    def use_implicit_tls(self) -> bool:
        return self.port == 465


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

    # HTTP relay
    api_host: str = Field(
        default="127.0.0.1",
        description="Bind address of the mail relay API"
    )
    api_port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        description="Port of the mail relay API"
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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def smtp(self) -> SmtpSettings:
        return SmtpSettings()

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

    try:
        _ = settings.storage
        results["storage"] = True
    except Exception as e:
        results["storage"] = False
        results["storage_error"] = str(e)

    try:
        smtp = settings.smtp
        results["smtp"] = smtp.is_configured
        if not smtp.is_configured:
            results["smtp_error"] = "Set SMTP_HOST, SMTP_USER, SMTP_PASS"
    except Exception as e:
        results["smtp"] = False
        results["smtp_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
