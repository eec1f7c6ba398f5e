"""
Centralized configuration for the listing review scout.

All settings are loaded from environment variables with sensible defaults.
Pydantic Settings provides validation and type coercion.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env then .env.local (so .env.local overrides). Use override=True so file wins over shell.
_repo_root = Path(__file__).resolve().parent.parent
load_dotenv(_repo_root / ".env", override=True)
_env_local = _repo_root / ".env.local"
if _env_local.exists():
    load_dotenv(_env_local, override=True)


class ScraperConfig(BaseSettings):
    """Remote source and acquisition tier settings."""

    base_url: str = Field(default="https://www.airbnb.com", alias="LISTING_BASE_URL")
    source_host: str = Field(
        default="airbnb.com",
        alias="LISTING_SOURCE_HOST",
        description="Host a locator must mention before the boundary accepts it.",
    )
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        alias="SCRAPER_USER_AGENT",
    )
    request_timeout: float = Field(default=15.0, alias="SCRAPER_REQUEST_TIMEOUT")  # seconds
    # Rendered tier (Playwright) navigation timeout (ms)
    render_timeout: int = Field(default=30000, alias="RENDER_TIMEOUT_MS")
    render_headless: bool = Field(default=True, alias="RENDER_HEADLESS")
    reviews_container_wait: int = Field(default=10000, alias="RENDER_REVIEWS_WAIT_MS")
    # Pauses after each scroll-to-bottom; one scroll per entry
    scroll_pauses: list[float] = Field(default_factory=lambda: [3.0, 2.0], alias="RENDER_SCROLL_PAUSES")
    rendered_enabled: bool = Field(default=True, alias="RENDERED_TIER_ENABLED")
    parsed_enabled: bool = Field(default=True, alias="PARSED_TIER_ENABLED")


class RetryConfig(BaseSettings):
    """Retry coordinator tuning. Backoff is linear: attempt_number * base_delay."""

    rendered_max_attempts: int = Field(default=3, alias="RENDERED_MAX_ATTEMPTS")
    parsed_max_attempts: int = Field(default=2, alias="PARSED_MAX_ATTEMPTS")
    base_delay: float = Field(default=1.0, alias="RETRY_BASE_DELAY")  # seconds
    max_delay: float = Field(default=10.0, alias="RETRY_MAX_DELAY")
    rendered_attempt_timeout: float = Field(default=90.0, alias="RENDERED_ATTEMPT_TIMEOUT")
    parsed_attempt_timeout: float = Field(default=45.0, alias="PARSED_ATTEMPT_TIMEOUT")


class AnalyzerConfig(BaseSettings):
    """Review selection defaults and caller-enforced limits."""

    default_max_reviews: int = Field(default=20, alias="DEFAULT_MAX_REVIEWS")
    default_top_reviews: int = Field(default=5, alias="DEFAULT_TOP_REVIEWS")
    max_input_reviews: int = Field(default=50, alias="MAX_ANALYSIS_REVIEWS")


class ObservabilityConfig(BaseSettings):
    """Logging and Prometheus metrics."""

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="console", alias="LOG_FORMAT")  # console or json
    # Prometheus: /metrics exposed on this port when enabled
    metrics_enabled: bool = Field(default=False, alias="PROMETHEUS_METRICS_ENABLED")
    metrics_port: int = Field(default=9100, alias="PROMETHEUS_METRICS_PORT")


class ServerConfig(BaseSettings):
    """HTTP boundary settings."""

    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")


class Settings(BaseSettings):
    """Root settings container; all config hangs off one object."""

    scraper: ScraperConfig = Field(default_factory=ScraperConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    analyzer: AnalyzerConfig = Field(default_factory=AnalyzerConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton settings instance. Cached after first call."""
    return Settings()
