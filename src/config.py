"""Application configuration using Pydantic BaseSettings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.constants import (
    BROWSER_CONTENT_WAIT_TIMEOUT_SECONDS,
    BROWSER_PAGE_LOAD_TIMEOUT_SECONDS,
    CHARS_PER_TOKEN_ESTIMATE,
    CHUNK_DELAY_SECONDS,
    COMPLETION_MAX_TOKENS,
    COMPLETION_TEMPERATURE,
    DEFAULT_CHUNK_MAX_TOKENS,
    DEFAULT_COMPLETION_MODEL,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    HISTORY_MESSAGE_LIMIT,
    HISTORY_MESSAGE_MAX_CHARS,
    MAX_SCRAPE_CONCURRENCY,
    MAX_URLS_PER_REQUEST,
    PER_SOURCE_MAX_CHARS,
    RATE_LIMIT_GATE_MAX_REQUESTS,
    RATE_LIMIT_GATE_WINDOW_SECONDS,
    RENDER_MAX_ATTEMPTS,
    RENDER_RETRY_DELAY_SECONDS,
    REQUEST_DELAY_SECONDS,
    THROTTLE_MAX_REQUESTS,
    THROTTLE_WINDOW_SECONDS,
    TOTAL_SOURCE_MAX_CHARS,
    URL_CACHE_TTL_SECONDS,
)


class ConfigurationError(RuntimeError):
    """Raised when required configuration is missing or inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        # Load .env first, then .env.local (for local/test overrides)
        # Later files override earlier ones, so .env.local takes precedence
        env_file=[".env", ".env.local"],
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Completion API Configuration
    groq_api_key: str = Field(..., description="Groq API key for chat completions")
    default_model: str = Field(
        default=DEFAULT_COMPLETION_MODEL,
        description="Completion model as '<provider>:<model>' (e.g. groq:llama-3.3-70b-versatile)",
    )
    completion_temperature: float = Field(
        default=COMPLETION_TEMPERATURE, ge=0.0, le=2.0
    )
    completion_max_tokens: int = Field(default=COMPLETION_MAX_TOKENS, gt=0)
    history_message_limit: int = Field(
        default=HISTORY_MESSAGE_LIMIT,
        ge=0,
        description="Number of previous messages forwarded to the model",
    )
    history_message_max_chars: int = Field(
        default=HISTORY_MESSAGE_MAX_CHARS,
        gt=0,
        description="Per-message character cap for forwarded history",
    )

    # Environment
    env: Literal["local", "railway", "prod"] = Field(
        default="local", description="Current environment"
    )
    log_level: str = Field(default="INFO", description="Python logging level")

    # Sentry Configuration
    sentry_dsn: str | None = Field(
        default=None, description="Sentry DSN for error tracking (optional)"
    )
    sentry_traces_sample_rate: float = Field(
        default=1.0, description="Sentry traces sample rate (0.0 to 1.0)"
    )

    # Logfire Configuration
    logfire_token: str | None = Field(
        default=None, description="Pydantic Logfire token for observability"
    )

    # ==========================================================================
    # Scraping Configuration
    # ==========================================================================
    # All timeouts can be overridden via environment variables.
    # Defaults are sourced from src/constants.py.

    scraper_timeout_seconds: float = Field(
        default=DEFAULT_HTTP_TIMEOUT_SECONDS,
        description="HTTP timeout for direct fetch requests (seconds)",
    )
    browser_page_load_timeout_seconds: float = Field(
        default=BROWSER_PAGE_LOAD_TIMEOUT_SECONDS,
        description="Timeout for headless browser navigation (seconds)",
    )
    browser_content_wait_timeout_seconds: float = Field(
        default=BROWSER_CONTENT_WAIT_TIMEOUT_SECONDS,
        description="Wait for client-rendered content after navigation (seconds)",
    )
    render_max_attempts: int = Field(default=RENDER_MAX_ATTEMPTS, ge=1)
    render_retry_delay_seconds: float = Field(
        default=RENDER_RETRY_DELAY_SECONDS, ge=0.0
    )
    url_cache_ttl_seconds: float = Field(
        default=URL_CACHE_TTL_SECONDS,
        gt=0,
        description="How long scraped URL content stays fresh (seconds)",
    )
    max_urls_per_request: int = Field(default=MAX_URLS_PER_REQUEST, ge=1)
    max_scrape_concurrency: int = Field(default=MAX_SCRAPE_CONCURRENCY, ge=1)

    # ==========================================================================
    # Prompt Budgets
    # ==========================================================================

    per_source_max_chars: int = Field(default=PER_SOURCE_MAX_CHARS, gt=0)
    total_source_max_chars: int = Field(default=TOTAL_SOURCE_MAX_CHARS, gt=0)
    chunk_max_tokens: int = Field(default=DEFAULT_CHUNK_MAX_TOKENS, gt=0)
    chars_per_token: int = Field(default=CHARS_PER_TOKEN_ESTIMATE, gt=0)

    # ==========================================================================
    # Rate Limiting Configuration
    # ==========================================================================

    throttle_max_requests: int = Field(
        default=THROTTLE_MAX_REQUESTS,
        description="Max chat requests per client per throttle window",
    )
    throttle_window_seconds: int = Field(
        default=THROTTLE_WINDOW_SECONDS,
        description="Throttle window duration in seconds",
    )
    request_delay_seconds: float = Field(
        default=REQUEST_DELAY_SECONDS,
        ge=0.0,
        description="Pause before processing each chat request (seconds)",
    )
    chunk_delay_seconds: float = Field(
        default=CHUNK_DELAY_SECONDS,
        ge=0.0,
        description="Pause before each chunk completion call (seconds)",
    )

    rate_limit_gate_enabled: bool = Field(
        default=False,
        description="Enable the Upstash-backed sliding window gate on /api/chat",
    )
    rate_limit_gate_max_requests: int = Field(default=RATE_LIMIT_GATE_MAX_REQUESTS)
    rate_limit_gate_window_seconds: int = Field(
        default=RATE_LIMIT_GATE_WINDOW_SECONDS
    )
    upstash_redis_rest_url: str | None = Field(
        default=None, description="Upstash Redis REST URL"
    )
    upstash_redis_rest_token: str | None = Field(
        default=None, description="Upstash Redis REST token"
    )

    def validate_rate_limit_gate(self) -> None:
        """Fail fast when the gate is enabled without a backing store."""
        if self.rate_limit_gate_enabled and not (
            self.upstash_redis_rest_url and self.upstash_redis_rest_token
        ):
            raise ConfigurationError(
                "RATE_LIMIT_GATE_ENABLED requires UPSTASH_REDIS_REST_URL "
                "and UPSTASH_REDIS_REST_TOKEN"
            )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
