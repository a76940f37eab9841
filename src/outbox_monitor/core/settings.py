"""Application settings and configuration.

This module defines all configuration options for the outbox monitor.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    Components that read thresholds accept an explicit ``Settings`` instance
    so tests do not have to mutate the module-level singleton.
    """

    # Application metadata
    app_name: str = Field(default="Outbox Monitor", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database configuration
    database_url: str = Field(default="sqlite:///./outbox.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Admin API access (empty means the admin routes refuse every request)
    admin_api_token: str | None = Field(default=None, alias="ADMIN_API_TOKEN")

    # Outbox alert thresholds
    outbox_pending_threshold: int = Field(default=50, alias="EMAIL_OUTBOX_PENDING_THRESHOLD")
    outbox_oldest_pending_max_age_minutes: int = Field(
        default=30,
        alias="EMAIL_OUTBOX_OLDEST_PENDING_MAX_AGE_MINUTES",
    )
    outbox_failure_spike_threshold: int = Field(
        default=10,
        alias="EMAIL_OUTBOX_FAILURE_SPIKE_THRESHOLD",
    )

    # In-memory rate limiting
    rate_limit_bypass: bool = Field(default=False, alias="RATE_LIMIT_BYPASS")
    rate_limit_cleanup_interval_seconds: float = Field(
        default=300.0,
        alias="RATE_LIMIT_CLEANUP_INTERVAL_SECONDS",
    )
    outbox_retry_rate_limit_per_min: int = Field(
        default=5,
        alias="OUTBOX_RETRY_RATE_LIMIT_PER_MIN",
    )
    outbox_retry_rate_limit_per_day: int = Field(
        default=20,
        alias="OUTBOX_RETRY_RATE_LIMIT_PER_DAY",
    )

    # CORS configuration for the admin dashboard
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )


settings = Settings()
