"""Health and readiness endpoints.

- GET /health — service status, uptime, proxy pool stats, store reachability
- GET /readiness — 200 only when the store answers and the pool has entries
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Response

from proxy_scraper.models.responses import ApiResponse

if TYPE_CHECKING:
    from proxy_scraper.proxy.manager import ProxyPoolManager
    from proxy_scraper.store.base import KeyValueStore


def create_health_router(
    *,
    proxy_pool: ProxyPoolManager | None = None,
    store: KeyValueStore | None = None,
    started_at: float | None = None,
) -> APIRouter:
    """Factory that creates the health router with injected dependencies."""

    health_router = APIRouter(tags=["health"])
    boot_time = started_at if started_at is not None else time.monotonic()

    @health_router.get("/health")
    async def health() -> dict:
        """Service health check with pool statistics."""
        proxy_stats: dict[str, Any] = proxy_pool.get_stats() if proxy_pool else {}
        store_healthy = await store.ping() if store else False

        return ApiResponse(
            success=True,
            data={
                "status": "ok",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "uptime": round(time.monotonic() - boot_time, 3),
                "store_healthy": store_healthy,
                "proxy_pool": proxy_stats,
            },
        ).model_dump()

    @health_router.get("/readiness")
    async def readiness(response: Response) -> dict:
        """Readiness probe — 200 iff the store is reachable AND the pool has proxies."""
        store_healthy = await store.ping() if store else False
        pool_size = proxy_pool.size if proxy_pool else 0

        is_ready = store_healthy and pool_size > 0

        if not is_ready:
            response.status_code = 503

        return ApiResponse(
            success=is_ready,
            data={
                "ready": is_ready,
                "store_healthy": store_healthy,
                "proxy_pool_size": pool_size,
            },
            error=None if is_ready else "Service not ready",
        ).model_dump()

    return health_router
