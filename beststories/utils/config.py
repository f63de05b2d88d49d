"""Type-safe environment configuration using Pydantic Settings."""

import os
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application configuration loaded from environment variables.

    Every field has a default so the service starts with no environment at all.
    Values are validated on load; bad values raise ValidationError.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields in .env
        env_ignore_empty=True,
    )

    APP_NAME: str = Field(
        default="hn-best-stories",
        description="Application name"
    )

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level"
    )

    LOG_JSON: bool = Field(
        default=False,
        description="Emit structured JSON log lines"
    )

    DEBUG: bool = Field(
        default=False,
        description="Debug mode flag"
    )

    # Upstream
    HN_API_BASE_URL: str = Field(
        default="https://hacker-news.firebaseio.com/v0",
        description="Base URL of the Hacker News API"
    )

    API_TIMEOUT: float = Field(
        default=10.0,
        description="Upstream request timeout in seconds",
        gt=0
    )

    # Cache
    BEST_STORIES_IDS_TTL: float = Field(
        default=60.0,
        description="Time-to-live of the cached best story ID list in seconds",
        gt=0
    )

    ITEM_TTL: float = Field(
        default=30.0,
        description="Time-to-live of a cached item in seconds",
        gt=0
    )

    CACHE_FAILED_ITEMS: bool = Field(
        default=True,
        description="Cache items whose fetch failed after retries as absent"
    )

    # Concurrency and retries
    MAX_CONCURRENT_REQUESTS: int | None = Field(
        default=None,
        description="Upper bound on in-flight upstream calls (default: 2 x CPU count)",
        gt=0
    )

    RETRY_DELAYS: list[float] = Field(
        default=[0.1, 0.2, 0.35],
        description="Backoff delays in seconds between upstream attempts"
    )

    SORT_BY_SCORE: bool = Field(
        default=False,
        description="Re-sort results by descending score"
    )

    # HTTP surface
    MAX_STORIES: int = Field(
        default=250,
        description="Largest accepted value of n",
        gt=0
    )

    RATE_LIMIT_REQUESTS: int = Field(
        default=1000,
        description="Requests allowed per client per rate limit window",
        gt=0
    )

    RATE_LIMIT_WINDOW: float = Field(
        default=10.0,
        description="Rate limit window length in seconds",
        gt=0
    )

    HOST: str = Field(default="0.0.0.0", description="Server bind address")

    PORT: int = Field(default=8080, description="Server port", gt=0)

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(
                f"LOG_LEVEL must be one of {valid_levels}, got '{v}'"
            )
        return v_upper

    @field_validator("HN_API_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("RETRY_DELAYS")
    @classmethod
    def validate_retry_delays(cls, v: list[float]) -> list[float]:
        """Delays must be non-negative, bounded and never decrease."""
        for delay in v:
            if delay < 0 or delay > 10:
                raise ValueError(f"RETRY_DELAYS values must be within [0, 10], got {delay}")
        if any(later < earlier for earlier, later in zip(v, v[1:])):
            raise ValueError("RETRY_DELAYS must be monotonically non-decreasing")
        return v

    def get_max_concurrent_requests(self) -> int:
        """Get the concurrency limit, defaulting to twice the CPU count."""
        if self.MAX_CONCURRENT_REQUESTS is not None:
            return self.MAX_CONCURRENT_REQUESTS
        return 2 * (os.cpu_count() or 1)


# Singleton instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Loads settings from environment variables and .env file on first call.
    Subsequent calls return the cached instance.

    Returns:
        Settings: The application settings instance

    Raises:
        ValidationError: If environment variables are invalid
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the settings singleton. Useful for testing."""
    global _settings
    _settings = None
