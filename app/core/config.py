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


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_database_settings() -> "DatabaseSettings":
    """Build data store settings from environment."""

    return DatabaseSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    """Build logging settings from environment."""

    return LogSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    production: bool = Field(
        False,
        description="Production mode (marks the session cookie as secure)",
    )
    external_api_secret: str | None = Field(
        None,
        description="Shared secret expected in the x-api-key header of /api/external routes",
    )

    session_cookie_name: str = Field(
        "session_token",
        description="Name of the HTTP-only cookie carrying the session token",
    )
    session_cookie_max_age_seconds: int = Field(
        60 * 60 * 24 * 7,
        description="Max-Age of the session cookie (7 days)",
        ge=1,
    )
    session_expiry_hours: int = Field(
        24,
        description="Lifetime of a stored session row",
        ge=1,
    )
    session_refresh_threshold_hours: int = Field(
        12,
        description="Extend a session when fewer hours than this remain",
        ge=0,
    )
    password_hash_rounds: int = Field(
        10,
        description="bcrypt cost factor used for new password hashes",
        ge=4,
        le=31,
    )

    login_rate_limit_enabled: bool = Field(
        True,
        description="Enable the per-client login attempt limiter",
    )
    login_max_attempts: int = Field(
        5,
        description="Maximum login attempts allowed per window (per client)",
        ge=1,
    )
    login_window_seconds: int = Field(
        60,
        description="Login rate limit window size in seconds",
        ge=1,
    )
    login_sweep_interval_seconds: int = Field(
        300,
        description="How often expired limiter entries are swept",
        ge=1,
    )

    default_page_size: int = Field(
        100,
        description="Page size used when only `page` is supplied",
        ge=1,
        le=500,
    )
    client_cache_ttl_seconds: float = Field(
        30.0,
        description="Default TTL of the client-side response cache",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class DatabaseSettings(BaseSettings):
    """Data store configuration.

    The relational store is reached through a PostgREST endpoint (Supabase).
    The in-memory backend is meant for local development and tests.
    """

    backend: str = Field(
        "memory",
        description="Data store backend: memory or postgrest",
    )
    url: str | None = Field(
        None,
        description="Base URL of the Supabase/PostgREST project",
    )
    service_key: str | None = Field(
        None,
        description="Service role key sent as apikey and bearer token",
    )
    timeout_seconds: float = Field(
        15.0,
        description="Request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10 * 1024 * 1024, description="Rotate after this many bytes (0 disables)")
    backup_count: int = Field(5, description="Rotated files to keep")
    request_id_header: str = Field("X-Request-ID", description="Correlation header name")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    db: DatabaseSettings = Field(default_factory=_build_database_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
