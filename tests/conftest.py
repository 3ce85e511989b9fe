"""Shared test fixtures for the scraper test suite."""

from __future__ import annotations

import pytest

from proxy_scraper.config.settings import ScraperSettings
from proxy_scraper.proxy.manager import ProxyPoolManager
from proxy_scraper.proxy.types import ProxyEndpoint
from proxy_scraper.resilience.rate_limiter import ProxyRateLimiter
from proxy_scraper.store.memory import MemoryStore
from tests.fakes import FakeClock, StaticProxySource, make_proxies


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> ScraperSettings:
    """Test settings with safe defaults."""
    return ScraperSettings(
        store_backend="memory",
        scrape_timeout_ms=2000,
        proxy_timeout_ms=500,
        max_attempts=10,
    )


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def three_proxies() -> list[ProxyEndpoint]:
    return make_proxies(3)


@pytest.fixture
def source(three_proxies: list[ProxyEndpoint]) -> StaticProxySource:
    return StaticProxySource(three_proxies)


@pytest.fixture
def pool(source: StaticProxySource, store: MemoryStore) -> ProxyPoolManager:
    return ProxyPoolManager(source=source, store=store)


@pytest.fixture
def rate_limiter(store: MemoryStore, clock: FakeClock) -> ProxyRateLimiter:
    return ProxyRateLimiter(store, key_ttl_seconds=2, clock=clock)
