"""Pydantic Settings for the scraper service.

All environment variables use the SCRAPER_ prefix.
Example: SCRAPER_PORT=3000, SCRAPER_REDIS_URL=redis://cache:6379/0
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

from proxy_scraper.constants import DEFAULT_MAX_REDIRECTS, DEFAULT_USER_AGENT


class ScraperSettings(BaseSettings):
    """Scraper service configuration validated from environment variables."""

    # Service
    port: int = 3000
    environment: str = "development"
    log_level: str = "INFO"

    # Store
    store_backend: Literal["redis", "memory"] = "redis"
    redis_url: str = "redis://localhost:6379/0"

    # Scraping defaults (overridable per request)
    scrape_timeout_ms: int = Field(default=30000, ge=1)
    requests_per_second: int = Field(default=1, ge=1, le=10)
    max_attempts: int = Field(default=100, ge=1)

    # Outbound fetch
    proxy_timeout_ms: int = Field(default=10000, ge=1)
    max_redirects: int = Field(default=DEFAULT_MAX_REDIRECTS, ge=0)
    user_agent: str = DEFAULT_USER_AGENT

    # Proxy pool
    proxy_provider: Literal["free"] = "free"  # only the file-backed free source ships
    proxy_list_path: str = "data/proxies.txt"
    proxy_refresh_interval_seconds: int = Field(default=0, ge=0)  # 0 = disabled

    # Rate limiting
    rate_limit_key_ttl_seconds: int = Field(default=2, ge=1)

    model_config = {"env_prefix": "SCRAPER_"}

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"
