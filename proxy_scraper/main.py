"""FastAPI application entry point and composition root.

Every component is constructed here and injected into the next; nothing is a
module-level singleton apart from ``app`` itself.

Startup: configure logging, initialize the proxy pool, start the optional
refresh loop.
Shutdown: cancel the refresh loop, close the store.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI

from proxy_scraper.config.settings import ScraperSettings
from proxy_scraper.fetch.strategy import FetchOptions, FetchStrategy
from proxy_scraper.logging_config import configure_logging
from proxy_scraper.middleware.error_handler import register_error_handlers
from proxy_scraper.middleware.request_id import RequestIdMiddleware
from proxy_scraper.proxy.manager import ProxyPoolManager
from proxy_scraper.proxy.sources import FileProxySource, ProxySourceRegistry
from proxy_scraper.proxy.types import ProviderType
from proxy_scraper.resilience.rate_limiter import ProxyRateLimiter
from proxy_scraper.routers.health import create_health_router
from proxy_scraper.routers.scrape import create_scrape_router
from proxy_scraper.services.scrape_service import ScrapeOrchestrator
from proxy_scraper.store.base import KeyValueStore
from proxy_scraper.store.memory import MemoryStore
from proxy_scraper.store.redis_store import RedisStore

logger = logging.getLogger(__name__)


@dataclass
class Components:
    """Everything the application wires together."""

    settings: ScraperSettings
    store: KeyValueStore
    sources: ProxySourceRegistry
    proxy_pool: ProxyPoolManager
    rate_limiter: ProxyRateLimiter
    fetch_strategy: FetchStrategy
    orchestrator: ScrapeOrchestrator


def build_store(settings: ScraperSettings) -> KeyValueStore:
    if settings.store_backend == "memory":
        return MemoryStore()
    return RedisStore(settings.redis_url)


def build_components(
    settings: ScraperSettings,
    *,
    store: KeyValueStore | None = None,
    sources: ProxySourceRegistry | None = None,
) -> Components:
    """Construct and wire all components from *settings*."""
    store = store or build_store(settings)

    if sources is None:
        sources = ProxySourceRegistry()
        sources.register(FileProxySource(settings.proxy_list_path))

    proxy_pool = ProxyPoolManager(
        source=sources.get(ProviderType(settings.proxy_provider)),
        store=store,
        refresh_interval_seconds=settings.proxy_refresh_interval_seconds,
    )
    rate_limiter = ProxyRateLimiter(
        store,
        key_ttl_seconds=settings.rate_limit_key_ttl_seconds,
    )
    fetch_options = FetchOptions(
        timeout_ms=settings.proxy_timeout_ms,
        max_redirects=settings.max_redirects,
        user_agent=settings.user_agent,
    )
    fetch_strategy = FetchStrategy(fetch_options)
    orchestrator = ScrapeOrchestrator(
        pool=proxy_pool,
        rate_limiter=rate_limiter,
        fetch_strategy=fetch_strategy,
        fetch_options=fetch_options,
        max_attempts=settings.max_attempts,
        default_timeout_ms=settings.scrape_timeout_ms,
        default_requests_per_second=settings.requests_per_second,
    )

    return Components(
        settings=settings,
        store=store,
        sources=sources,
        proxy_pool=proxy_pool,
        rate_limiter=rate_limiter,
        fetch_strategy=fetch_strategy,
        orchestrator=orchestrator,
    )


def create_app(
    settings: ScraperSettings | None = None,
    *,
    components: Components | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or ScraperSettings()
    components = components or build_components(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        logger.info("Starting scraper service on port %d (%s)", settings.port, settings.environment)

        await components.proxy_pool.initialize()

        refresh_task: asyncio.Task[None] | None = None
        if settings.proxy_refresh_interval_seconds > 0:
            refresh_task = asyncio.create_task(components.proxy_pool.refresh_loop())

        logger.info("Scraper service started with %d proxies", components.proxy_pool.size)

        yield

        logger.info("Shutting down scraper service…")

        if refresh_task is not None:
            refresh_task.cancel()
            try:
                await refresh_task
            except asyncio.CancelledError:
                pass

        await components.store.close()
        logger.info("Scraper service shut down")

    app = FastAPI(
        title="Proxy Scraper Service",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.components = components

    register_error_handlers(app, diagnostics=not settings.is_production)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(
        create_health_router(
            proxy_pool=components.proxy_pool,
            store=components.store,
            started_at=time.monotonic(),
        )
    )
    app.include_router(create_scrape_router(orchestrator=components.orchestrator))

    return app


app = create_app()
