"""Proxy pool manager with round-robin selection, failure tracking, and a persisted snapshot.

Endpoints come from a ``ProxySource`` and are cached in the key-value store
under ``proxies:active`` so a restart (or a broken source) can fall back to
the last good list. Failed endpoints are excluded from selection until every
entry has failed, at which point the failed set is cleared so the pool can
never lock itself out permanently. The failed set is mirrored to the store
under ``proxies:failed``.

Cursor movement and failed-set mutation happen under one ``asyncio.Lock``;
store round trips happen outside it. Writes of the failed set are serialized by
a second lock and always carry the set as it is at write time. Store errors
are logged and otherwise ignored; the in-memory state stays authoritative
for this process.
"""

from __future__ import annotations

import asyncio
import json
import logging

from proxy_scraper.constants import ACTIVE_PROXIES_KEY, FAILED_PROXIES_KEY
from proxy_scraper.middleware.error_handler import PoolExhaustedError, StoreUnavailableError
from proxy_scraper.proxy.sources import ProxySource
from proxy_scraper.proxy.types import ProxyEndpoint
from proxy_scraper.store.base import KeyValueStore

logger = logging.getLogger(__name__)


class ProxyPoolManager:
    """Manages the shared pool of egress proxies."""

    def __init__(
        self,
        source: ProxySource,
        store: KeyValueStore,
        refresh_interval_seconds: int = 0,
    ) -> None:
        self._source = source
        self._store = store
        self._refresh_interval_seconds = refresh_interval_seconds
        self._proxies: list[ProxyEndpoint] = []
        self._index: int = 0
        self._failed: set[str] = set()
        self._lock = asyncio.Lock()
        self._persist_lock = asyncio.Lock()

    @property
    def size(self) -> int:
        return len(self._proxies)

    # ------------------------------------------------------------------
    # Initialization / refresh
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Load the persisted snapshot, falling back to the source when it is empty.

        An empty pool is not fatal at startup: the next ``next()`` call retries
        the refresh and readiness reports the pool as not ready meanwhile.
        """
        cached = await self._load_snapshot()
        if cached:
            async with self._lock:
                self._replace(cached)
            if await self._load_failed():
                await self._persist_failed()
            logger.info("Proxy pool initialized with %d endpoints from cache", len(cached))
            return

        try:
            await self.refresh()
        except PoolExhaustedError:
            logger.warning("Proxy pool initialized empty — source and cache have no proxies")

    async def refresh(self) -> None:
        """Re-pull endpoints from the source and persist them as the new snapshot.

        On source failure keep the persisted snapshot, or the current in-memory
        entries if the store is unavailable too.

        Raises
        ------
        PoolExhaustedError
            Only if the source, the persisted cache and the current pool are all empty.
        """
        try:
            fresh = await self._source.load_all()
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to refresh proxies from %s source: %s", self._source.provider_type.value, exc)
            fresh = []

        if fresh:
            async with self._lock:
                self._replace(fresh)
            await self._persist_snapshot(fresh)
            if await self._load_failed():
                await self._persist_failed()
            logger.info(
                "Loaded %d proxies from %s provider",
                len(fresh),
                self._source.provider_type.value,
            )
            return

        cached = await self._load_snapshot()
        if cached:
            async with self._lock:
                self._replace(cached)
            logger.warning("Proxy refresh failed — keeping %d proxies from persisted snapshot", len(cached))
            return

        if self._proxies:
            logger.warning("Proxy refresh failed — keeping %d in-memory proxies", len(self._proxies))
            return

        raise PoolExhaustedError("Proxy source and persisted cache are both empty")

    async def refresh_loop(self) -> None:
        """Periodically refresh the pool every ``refresh_interval_seconds``."""
        while True:
            await asyncio.sleep(self._refresh_interval_seconds)
            try:
                await self.refresh()
            except PoolExhaustedError as exc:
                logger.warning("Scheduled proxy refresh found nothing: %s", exc)

    def _replace(self, entries: list[ProxyEndpoint]) -> None:
        """Swap in *entries*, keeping counters for endpoints already known. Caller holds the lock.

        Failed keys that are no longer in the pool are dropped.
        """
        known = {p.key: p for p in self._proxies}
        for entry in entries:
            previous = known.get(entry.key)
            if previous is not None:
                entry.success_count = previous.success_count
                entry.failure_count = previous.failure_count
        self._proxies = list(entries)
        self._failed &= {p.key for p in self._proxies}
        self._index = self._index % len(self._proxies) if self._proxies else 0

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    async def next(self) -> ProxyEndpoint:
        """Return the next non-failed endpoint in round-robin order.

        When every endpoint has failed the failed set is cleared and selection
        runs once more.

        Raises
        ------
        PoolExhaustedError
            If the pool has no entries at all.
        """
        if not self._proxies:
            await self.refresh()

        reset = False
        async with self._lock:
            if not self._proxies:
                raise PoolExhaustedError()

            proxy = self._select_locked()
            if proxy is None:
                logger.warning(
                    "All %d proxies marked as failed, resetting failed list",
                    len(self._proxies),
                )
                self._failed.clear()
                reset = True
                proxy = self._select_locked()

        if reset:
            await self._persist_failed()

        if proxy is None:
            raise PoolExhaustedError()
        return proxy

    def _select_locked(self) -> ProxyEndpoint | None:
        pool_size = len(self._proxies)
        for _ in range(pool_size):
            proxy = self._proxies[self._index % pool_size]
            self._index = (self._index + 1) % pool_size
            if proxy.key not in self._failed:
                return proxy
        return None

    def get_available(self) -> list[ProxyEndpoint]:
        """Entries not currently in the failed set."""
        return [p for p in self._proxies if p.key not in self._failed]

    # ------------------------------------------------------------------
    # Failure tracking
    # ------------------------------------------------------------------

    async def mark_failed(self, proxy: ProxyEndpoint) -> None:
        """Add *proxy* to the failed set (idempotent) and persist the set."""
        async with self._lock:
            proxy.failure_count += 1
            if proxy.key in self._failed:
                return
            self._failed.add(proxy.key)

        logger.warning("Marked proxy as failed: %s (failures: %d)", proxy.key, proxy.failure_count)
        await self._persist_failed()

    def mark_success(self, proxy: ProxyEndpoint) -> None:
        """Record a successful request through the proxy."""
        proxy.success_count += 1

    def is_failed(self, proxy: ProxyEndpoint) -> bool:
        return proxy.key in self._failed

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    async def _load_snapshot(self) -> list[ProxyEndpoint]:
        try:
            raw = await self._store.get(ACTIVE_PROXIES_KEY)
        except StoreUnavailableError as exc:
            logger.error("Failed to load proxies from store: %s", exc)
            return []
        if not raw:
            return []
        try:
            return [ProxyEndpoint.from_dict(item) for item in json.loads(raw)]
        except (ValueError, KeyError, TypeError) as exc:
            logger.error("Discarding corrupt proxy snapshot: %s", exc)
            return []

    async def _persist_snapshot(self, entries: list[ProxyEndpoint]) -> None:
        try:
            await self._store.set(ACTIVE_PROXIES_KEY, json.dumps([p.to_dict() for p in entries]))
        except StoreUnavailableError as exc:
            logger.warning("Could not persist proxy snapshot: %s", exc)

    async def _load_failed(self) -> bool:
        """Merge the persisted failed keys that are still in the pool.

        Returns ``True`` if the persisted list held keys outside the pool.
        """
        try:
            raw = await self._store.get(FAILED_PROXIES_KEY)
        except StoreUnavailableError as exc:
            logger.error("Failed to load failed proxies from store: %s", exc)
            return False
        if not raw:
            return False
        try:
            keys = [str(k) for k in json.loads(raw)]
        except (ValueError, TypeError) as exc:
            logger.error("Discarding corrupt failed-proxy list: %s", exc)
            return False
        async with self._lock:
            current = {p.key for p in self._proxies}
            self._failed.update(k for k in keys if k in current)
        return any(k not in current for k in keys)

    async def _persist_failed(self) -> None:
        """Mirror the current failed set to the store, deleting the key when it is empty."""
        async with self._persist_lock:
            snapshot = sorted(self._failed)
            try:
                if snapshot:
                    await self._store.set(FAILED_PROXIES_KEY, json.dumps(snapshot))
                else:
                    await self._store.delete(FAILED_PROXIES_KEY)
            except StoreUnavailableError as exc:
                logger.warning("Could not persist failed proxy list: %s", exc)

    # ------------------------------------------------------------------
    # Stats / metrics
    # ------------------------------------------------------------------

    def get_stats(self) -> dict:
        """Return proxy pool statistics for the health endpoint."""
        total = len(self._proxies)
        failed = sum(1 for p in self._proxies if p.key in self._failed)

        per_proxy = [
            {
                "proxy": p.key,
                "scheme": p.scheme,
                "provider": p.provider.value,
                "is_failed": p.key in self._failed,
                "success_count": p.success_count,
                "failure_count": p.failure_count,
            }
            for p in self._proxies
        ]

        return {
            "total": total,
            "available": total - failed,
            "failed": failed,
            "proxies": per_proxy,
        }
