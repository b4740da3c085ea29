"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    admin_api_key_required: bool = Field(
        True,
        description="Whether administrative endpoints require an admin key",
    )
    admin_api_keys: str | None = Field(
        None,
        description="Comma-separated list of admin keys accepted in X-Admin-Key",
    )
    trust_forwarded_for: bool = Field(
        False,
        description="Use the first X-Forwarded-For hop as client IP (behind a trusted proxy)",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Keyed record store configuration."""

    backend: str = Field(
        "memory",
        description="Record store backend: 'memory' (single process) or 'sql'",
    )
    database_url: str = Field(
        "sqlite:///./access_records.db",
        description="SQLAlchemy database URL used by the 'sql' backend",
    )
    timeout_seconds: float = Field(
        5.0,
        description="Maximum time a transaction may wait for its key",
        gt=0,
    )
    max_retries: int = Field(
        3,
        description="Times the SQL backend re-runs a transaction that lost an insert race",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class MagicLinkSettings(BaseSettings):
    """Magic link token configuration."""

    token_ttl_seconds: int = Field(
        24 * 60 * 60,
        description="Lifetime of an issued magic link token",
        ge=1,
    )
    token_bytes: int = Field(
        32,
        description="Random bytes per token (hex encoded, so 2x characters)",
        ge=32,
    )
    link_base_url: str = Field(
        "http://localhost:3000",
        description="Base URL of the chat frontend that redeems links",
    )
    expose_links: bool = Field(
        False,
        description="Return the magic link in the issuance response (local development only)",
    )

    model_config = SettingsConfigDict(
        env_prefix="MAGIC_LINK_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Sliding-window limits per limiter class."""

    enabled: bool = Field(
        True,
        description="Enforce rate limits in the HTTP layer",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* headers when throttling",
    )

    magic_link_window_seconds: int = Field(3600, ge=1)
    magic_link_max_attempts: int = Field(3, ge=1)
    magic_link_block_seconds: int = Field(3600, ge=1)

    magic_link_ip_window_seconds: int = Field(600, ge=1)
    magic_link_ip_max_attempts: int = Field(3, ge=1)
    magic_link_ip_block_seconds: int = Field(600, ge=1)

    chat_window_seconds: int = Field(60, ge=1)
    chat_max_attempts: int = Field(20, ge=1)
    chat_block_seconds: int = Field(300, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class DeliverySettings(BaseSettings):
    """Magic link delivery configuration."""

    backend: str = Field(
        "log",
        description="Link delivery backend: 'log' (no email sent) or 'resend'",
    )
    resend_api_key: str | None = Field(
        None,
        description="Resend API key used by the 'resend' backend",
    )
    email_from: str | None = Field(
        None,
        description="Sender address for magic link emails",
    )
    subject: str = Field(
        "Continue your onboarding chat",
        description="Subject line of magic link emails",
    )
    timeout_seconds: float = Field(
        10.0,
        description="HTTP timeout for the delivery provider",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="DELIVERY_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="'json' or 'plain'")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    magic_link: MagicLinkSettings = Field(default_factory=MagicLinkSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    delivery: DeliverySettings = Field(default_factory=DeliverySettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
