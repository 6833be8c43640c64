"""Application settings using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from trendscope.constants.feed import (
    ANTHROPIC_API_URL,
    ANTHROPIC_MAX_TOKENS,
    MAX_RETRIES,
    REQUEST_TIMEOUT_SECONDS,
    SOLANA_TRACKER_BASE_URL,
)
from trendscope.models.feed import SortDirection, SortKey, Timeframe


class Settings(BaseSettings):
    """TrendScope configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Application
    app_name: str = Field(default="TrendScope", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Minimum log level"
    )

    # Server
    host: str = Field(default="127.0.0.1", description="Dashboard host")
    port: int = Field(default=7860, ge=1, le=65535, description="Dashboard port")

    # Trending feed API
    solana_tracker_base_url: str = Field(
        default=SOLANA_TRACKER_BASE_URL, description="Solana Tracker data API base URL"
    )
    solana_tracker_api_key: SecretStr = Field(
        default=SecretStr(""), description="Solana Tracker API key"
    )
    request_timeout: float = Field(
        default=REQUEST_TIMEOUT_SECONDS, gt=0, description="HTTP timeout in seconds"
    )
    max_retries: int = Field(default=MAX_RETRIES, ge=1, le=10, description="Retry attempts")

    # Circuit Breaker
    circuit_breaker_threshold: int = Field(
        default=5, ge=1, description="Failures before circuit opens"
    )
    circuit_breaker_cooldown: int = Field(
        default=30, ge=1, description="Seconds before half-open"
    )

    # Feed defaults
    default_timeframe: Timeframe = Field(
        default=Timeframe.M5, description="Timeframe selected at session start"
    )
    default_sort_key: SortKey = Field(default=SortKey.RANK, description="Initial sort column")
    default_sort_direction: SortDirection = Field(
        default=SortDirection.ASC, description="Initial sort direction"
    )

    # AI ranking
    anthropic_api_url: str = Field(
        default=ANTHROPIC_API_URL, description="Anthropic Messages API endpoint"
    )
    anthropic_api_key: SecretStr = Field(default=SecretStr(""), description="Anthropic API key")
    anthropic_model: str = Field(
        default="claude-3-5-sonnet-latest", description="Model used for AI ranking"
    )
    anthropic_max_tokens: int = Field(
        default=ANTHROPIC_MAX_TOKENS, ge=1, description="Max tokens for ranking replies"
    )

    @field_validator("solana_tracker_base_url", "anthropic_api_url")
    @classmethod
    def validate_http_url(cls, v: str) -> str:
        """Validate API URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("API URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept lower-case log levels from the environment."""
        return v.upper() if isinstance(v, str) else v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
