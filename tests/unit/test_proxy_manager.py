"""Unit tests for the proxy pool manager."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from proxy_scraper.constants import ACTIVE_PROXIES_KEY, FAILED_PROXIES_KEY
from proxy_scraper.middleware.error_handler import PoolExhaustedError, StoreUnavailableError
from proxy_scraper.proxy.manager import ProxyPoolManager
from proxy_scraper.proxy.types import ProviderType, ProxyEndpoint
from proxy_scraper.store.memory import MemoryStore
from tests.fakes import StaticProxySource, make_proxies


def _broken_store() -> MemoryStore:
    """Memory store whose every round trip raises StoreUnavailableError."""
    store = MemoryStore()
    down = StoreUnavailableError("redis down")
    store.get = AsyncMock(side_effect=down)  # type: ignore[method-assign]
    store.set = AsyncMock(side_effect=down)  # type: ignore[method-assign]
    store.delete = AsyncMock(side_effect=down)  # type: ignore[method-assign]
    return store


class _SlowStore(MemoryStore):
    """Memory store that stalls the next ``set`` or ``delete`` by ``delay_next`` seconds."""

    def __init__(self) -> None:
        super().__init__()
        self.delay_next = 0.0

    async def _pause(self) -> None:
        delay, self.delay_next = self.delay_next, 0.0
        await asyncio.sleep(delay)

    async def set(self, key: str, value: str) -> None:
        await self._pause()
        await super().set(key, value)

    async def delete(self, key: str) -> bool:
        await self._pause()
        return await super().delete(key)


class TestProxyEndpoint:
    """Test ProxyEndpoint dataclass defaults and serialization."""

    def test_defaults(self):
        ep = ProxyEndpoint(address="10.0.0.1", port=8080)
        assert ep.scheme == "http"
        assert ep.provider is ProviderType.FREE
        assert ep.metadata == {}
        assert ep.success_count == 0
        assert ep.failure_count == 0

    def test_identity_key(self):
        ep = ProxyEndpoint(address="10.0.0.1", port=3128, scheme="https")
        assert ep.key == "10.0.0.1:3128"
        assert ep.proxy_url("http") == "http://10.0.0.1:3128"
        assert not hasattr(ep, "url")

    def test_dict_round_trip_drops_counters(self):
        ep = ProxyEndpoint(
            address="10.0.0.1",
            port=443,
            scheme="https",
            metadata={"reliability": "low"},
            success_count=5,
        )
        restored = ProxyEndpoint.from_dict(ep.to_dict())
        assert restored.key == ep.key
        assert restored.scheme == "https"
        assert restored.metadata == {"reliability": "low"}
        assert restored.success_count == 0


class TestInitialize:
    """Test ProxyPoolManager.initialize()."""

    @pytest.mark.asyncio
    async def test_loads_from_source_when_cache_empty(self, pool, source, store):
        await pool.initialize()
        assert pool.size == 3
        assert source.calls == 1
        cached = json.loads(await store.get(ACTIVE_PROXIES_KEY))
        assert [p["address"] for p in cached] == ["10.0.0.1", "10.0.0.2", "10.0.0.3"]

    @pytest.mark.asyncio
    async def test_prefers_persisted_snapshot(self, store):
        cached = make_proxies(2, port=9000)
        await store.set(ACTIVE_PROXIES_KEY, json.dumps([p.to_dict() for p in cached]))
        source = StaticProxySource(make_proxies(5))
        pm = ProxyPoolManager(source=source, store=store)

        await pm.initialize()

        assert pm.size == 2
        assert source.calls == 0

    @pytest.mark.asyncio
    async def test_restores_persisted_failed_set(self, store):
        cached = make_proxies(2)
        await store.set(ACTIVE_PROXIES_KEY, json.dumps([p.to_dict() for p in cached]))
        await store.set(FAILED_PROXIES_KEY, json.dumps(["10.0.0.1:8080"]))
        pm = ProxyPoolManager(source=StaticProxySource(), store=store)

        await pm.initialize()

        assert [p.key for p in pm.get_available()] == ["10.0.0.2:8080"]

    @pytest.mark.asyncio
    async def test_empty_everywhere_does_not_raise(self, store):
        pm = ProxyPoolManager(source=StaticProxySource(), store=store)
        await pm.initialize()
        assert pm.size == 0

    @pytest.mark.asyncio
    async def test_corrupt_snapshot_falls_back_to_source(self, store, source):
        await store.set(ACTIVE_PROXIES_KEY, "{not json")
        pm = ProxyPoolManager(source=source, store=store)
        await pm.initialize()
        assert pm.size == 3


class TestNext:
    """Test round-robin selection with failure filtering."""

    @pytest.mark.asyncio
    async def test_round_robin_order(self, pool):
        await pool.initialize()
        keys = [(await pool.next()).key for _ in range(6)]
        assert keys == [
            "10.0.0.1:8080",
            "10.0.0.2:8080",
            "10.0.0.3:8080",
            "10.0.0.1:8080",
            "10.0.0.2:8080",
            "10.0.0.3:8080",
        ]

    @pytest.mark.asyncio
    async def test_skips_failed(self, pool):
        await pool.initialize()
        first = await pool.next()
        await pool.mark_failed(first)
        selected = [(await pool.next()).key for _ in range(4)]
        assert first.key not in selected

    @pytest.mark.asyncio
    async def test_resets_failed_set_when_all_failed(self, pool, store):
        await pool.initialize()
        for _ in range(3):
            await pool.mark_failed(await pool.next())
        assert pool.get_available() == []
        assert await store.get(FAILED_PROXIES_KEY) is not None

        proxy = await pool.next()

        assert proxy is not None
        assert len(pool.get_available()) == 3
        assert await store.get(FAILED_PROXIES_KEY) is None

    @pytest.mark.asyncio
    async def test_raises_pool_exhausted_when_nothing_anywhere(self, store):
        pm = ProxyPoolManager(source=StaticProxySource(), store=store)
        await pm.initialize()
        with pytest.raises(PoolExhaustedError):
            await pm.next()

    @pytest.mark.asyncio
    async def test_lazy_refresh_on_empty_pool(self, pool, source):
        proxy = await pool.next()
        assert proxy.key == "10.0.0.1:8080"
        assert source.calls == 1

    @pytest.mark.asyncio
    async def test_concurrent_selection_is_fair(self, pool):
        await pool.initialize()
        selected = await asyncio.gather(*(pool.next() for _ in range(30)))
        counts = {}
        for proxy in selected:
            counts[proxy.key] = counts.get(proxy.key, 0) + 1
        assert counts == {"10.0.0.1:8080": 10, "10.0.0.2:8080": 10, "10.0.0.3:8080": 10}


class TestMarkFailed:
    """Test mark_failed / mark_success behavior."""

    @pytest.mark.asyncio
    async def test_persists_failed_set(self, pool, store):
        await pool.initialize()
        proxy = await pool.next()
        await pool.mark_failed(proxy)
        assert json.loads(await store.get(FAILED_PROXIES_KEY)) == [proxy.key]
        assert pool.is_failed(proxy)

    @pytest.mark.asyncio
    async def test_idempotent(self, pool):
        await pool.initialize()
        proxy = await pool.next()
        await pool.mark_failed(proxy)
        await pool.mark_failed(proxy)
        assert len(pool.get_available()) == 2
        assert proxy.failure_count == 2

    @pytest.mark.asyncio
    async def test_store_outage_keeps_in_memory_state(self, source):
        pm = ProxyPoolManager(source=source, store=_broken_store())
        await pm.initialize()
        proxy = await pm.next()

        await pm.mark_failed(proxy)

        assert pm.is_failed(proxy)

    @pytest.mark.asyncio
    async def test_concurrent_marks_persist_every_key(self, source):
        store = _SlowStore()
        pm = ProxyPoolManager(source=source, store=store)
        await pm.refresh()
        store.delay_next = 0.05
        first, second = make_proxies(2)

        await asyncio.gather(pm.mark_failed(first), pm.mark_failed(second))

        assert json.loads(await store.get(FAILED_PROXIES_KEY)) == [first.key, second.key]

    @pytest.mark.asyncio
    async def test_mark_during_reset_is_persisted(self, source):
        store = _SlowStore()
        pm = ProxyPoolManager(source=source, store=store)
        await pm.refresh()
        for proxy in make_proxies(3):
            pm._failed.add(proxy.key)
        store.delay_next = 0.05
        target = make_proxies(1)[0]

        await asyncio.gather(pm.next(), pm.mark_failed(target))

        assert pm.is_failed(target)
        assert json.loads(await store.get(FAILED_PROXIES_KEY)) == [target.key]

    @pytest.mark.asyncio
    async def test_mark_success_increments(self, pool):
        await pool.initialize()
        proxy = await pool.next()
        pool.mark_success(proxy)
        pool.mark_success(proxy)
        assert proxy.success_count == 2


class TestRefresh:
    """Test refresh() fallbacks."""

    @pytest.mark.asyncio
    async def test_replaces_entries_and_persists(self, pool, source, store):
        await pool.initialize()
        source.proxies = make_proxies(5, port=9000)

        await pool.refresh()

        assert pool.size == 5
        cached = json.loads(await store.get(ACTIVE_PROXIES_KEY))
        assert len(cached) == 5

    @pytest.mark.asyncio
    async def test_source_failure_keeps_persisted_snapshot(self, pool, source):
        await pool.initialize()
        source.fail = True

        await pool.refresh()

        assert pool.size == 3

    @pytest.mark.asyncio
    async def test_source_and_store_failure_keeps_in_memory(self, source):
        pm = ProxyPoolManager(source=source, store=_broken_store())
        await pm.refresh()
        source.fail = True

        await pm.refresh()

        assert pm.size == 3

    @pytest.mark.asyncio
    async def test_raises_only_when_everything_empty(self, store):
        pm = ProxyPoolManager(source=StaticProxySource(fail=True), store=store)
        with pytest.raises(PoolExhaustedError):
            await pm.refresh()

    @pytest.mark.asyncio
    async def test_keeps_counters_for_known_endpoints(self, pool):
        await pool.initialize()
        proxy = await pool.next()
        pool.mark_success(proxy)

        await pool.refresh()

        stats = {p["proxy"]: p for p in pool.get_stats()["proxies"]}
        assert stats[proxy.key]["success_count"] == 1

    @pytest.mark.asyncio
    async def test_cursor_stays_valid_after_shrink(self, pool, source):
        await pool.initialize()
        for _ in range(2):
            await pool.next()
        source.proxies = make_proxies(1)

        await pool.refresh()

        assert (await pool.next()).key == "10.0.0.1:8080"

    @pytest.mark.asyncio
    async def test_drops_failed_keys_missing_from_new_list(self, pool, source, store):
        await pool.initialize()
        gone = make_proxies(3)[2]
        await pool.mark_failed(gone)

        source.proxies = make_proxies(2)
        await pool.refresh()

        assert pool.get_stats()["failed"] == 0
        assert gone.key not in pool._failed
        assert await store.get(FAILED_PROXIES_KEY) is None

        source.proxies = make_proxies(3)
        await pool.refresh()

        assert len(pool.get_available()) == 3

    @pytest.mark.asyncio
    async def test_stale_persisted_failed_keys_are_ignored(self, store):
        cached = make_proxies(2)
        await store.set(ACTIVE_PROXIES_KEY, json.dumps([p.to_dict() for p in cached]))
        await store.set(FAILED_PROXIES_KEY, json.dumps(["10.0.0.2:8080", "10.9.9.9:8080"]))
        pm = ProxyPoolManager(source=StaticProxySource(), store=store)

        await pm.initialize()

        assert pm._failed == {"10.0.0.2:8080"}
        assert json.loads(await store.get(FAILED_PROXIES_KEY)) == ["10.0.0.2:8080"]



class TestStats:
    """Test get_stats accuracy."""

    @pytest.mark.asyncio
    async def test_counts(self, pool):
        await pool.initialize()
        await pool.mark_failed(await pool.next())
        stats = pool.get_stats()
        assert stats["total"] == 3
        assert stats["failed"] == 1
        assert stats["available"] == 2
        assert stats["proxies"][0]["is_failed"] is True
        assert stats["proxies"][0]["failure_count"] == 1
