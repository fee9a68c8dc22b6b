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


class LogSettings(BaseSettings):
    """Logging configuration (format, destination and correlation header)."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(
        None,
        description="Log file path when output=file",
    )
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    project_name: str = Field(
        "Launchpad",
        description="Product name used in outbound messages",
    )
    debug: bool = Field(
        False,
        description="Run the FastAPI application in debug mode",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Sliding-window rate limits per scope.

    Defaults for the public, expensive and email scopes:
    20, 5 and 10 requests per hour respectively.
    """

    enabled: bool = Field(
        True,
        description="Enable rate limiting on public endpoints",
    )
    backend: str = Field(
        "redis",
        description="Counter store: redis (shared) or memory (single process only)",
    )
    timeout_seconds: float = Field(
        2.0,
        description="Upper bound for a single store round-trip; exceeded means reject",
        gt=0,
    )
    include_headers: bool = Field(
        True,
        description="Include Retry-After on 429 responses (X-RateLimit-* are always sent)",
    )

    general_requests: int = Field(20, ge=1)
    general_window_seconds: int = Field(3600, ge=1)
    expensive_requests: int = Field(5, ge=1)
    expensive_window_seconds: int = Field(3600, ge=1)
    notification_requests: int = Field(10, ge=1)
    notification_window_seconds: int = Field(3600, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class RedisSettings(BaseSettings):
    """Shared rate-limit store connection."""

    url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL (credentials included)",
    )
    socket_timeout_seconds: float = Field(
        1.0,
        description="Socket connect/read timeout for Redis calls",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class DatabaseSettings(BaseSettings):
    """Durable store for enrollments and processed webhook events."""

    url: str = Field(
        "sqlite+aiosqlite:///./waitlist.db",
        description="SQLAlchemy async database URL",
    )
    create_schema: bool = Field(
        True,
        description="Create tables on startup (disable when migrations manage the schema)",
    )
    echo: bool = Field(False, description="Echo SQL statements")
    pool_size: int = Field(10, ge=1)
    max_overflow: int = Field(10, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        case_sensitive=False,
    )


class WebhookSettings(BaseSettings):
    """Payment processor webhook authentication."""

    signing_secret: str | None = Field(
        None,
        description="Shared secret used to sign webhook payloads",
    )
    tolerance_seconds: int = Field(
        300,
        description="Maximum allowed clock skew between signature timestamp and now",
        ge=1,
    )
    signature_header: str = Field(
        "Stripe-Signature",
        description="Header carrying the payload signature",
    )

    model_config = SettingsConfigDict(
        env_prefix="WEBHOOK_",
        case_sensitive=False,
    )


class EmailSettings(BaseSettings):
    """Transactional email provider configuration."""

    provider: str = Field(
        "log",
        description="Delivery provider: resend or log",
    )
    api_key: str | None = Field(
        None,
        description="API key for the delivery provider",
    )
    base_url: str = Field(
        "https://api.resend.com",
        description="Provider API endpoint",
    )
    from_address: str = Field(
        "hello@example.com",
        description="Sender address for outbound messages",
    )
    timeout_seconds: float = Field(
        10.0,
        description="Upper bound for rendering and delivering one message",
        gt=0,
    )
    confirmation_enabled: bool = Field(
        True,
        description="Send a confirmation email after a successful enrollment",
    )

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_",
        case_sensitive=False,
    )


def _build(settings_cls: type[BaseSettings]):
    """Build a nested settings object from environment.

    Pydantic Settings (v2) populates values from environment variables, but
    static type checkers treat fields as constructor arguments.
    """

    return settings_cls()  # type: ignore[call-arg]


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    log: LogSettings = Field(default_factory=lambda: _build(LogSettings))
    app: AppSettings = Field(default_factory=lambda: _build(AppSettings))
    rate_limit: RateLimitSettings = Field(
        default_factory=lambda: _build(RateLimitSettings)
    )
    redis: RedisSettings = Field(default_factory=lambda: _build(RedisSettings))
    database: DatabaseSettings = Field(
        default_factory=lambda: _build(DatabaseSettings)
    )
    webhook: WebhookSettings = Field(default_factory=lambda: _build(WebhookSettings))
    email: EmailSettings = Field(default_factory=lambda: _build(EmailSettings))

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
