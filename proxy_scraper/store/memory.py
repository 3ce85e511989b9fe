"""In-process key-value store with TTL expiry.

Used for single-instance deployments (``SCRAPER_STORE_BACKEND=memory``) and
in tests. Expiry deadlines are kept in a min-heap; every write first drops the
keys whose deadline has passed, so per-second rate-limit keys that are never
read again still go away. Reads also check expiry. None of the methods
suspend between reading and writing a key, so each call is atomic with
respect to other coroutines on the same event loop.
"""

from __future__ import annotations

import heapq
import time
from collections.abc import Callable

from proxy_scraper.store.base import KeyValueStore


class MemoryStore(KeyValueStore):
    """Dict-backed store. ``clock`` is injectable so tests can expire keys."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        # key -> (value, expiry deadline or None)
        self._data: dict[str, tuple[str, float | None]] = {}
        # (deadline, key); stale once the key is rewritten or deleted
        self._expiries: list[tuple[float, str]] = []

    def __len__(self) -> int:
        return len(self._data)

    def _purge_expired(self) -> None:
        now = self._clock()
        while self._expiries and self._expiries[0][0] <= now:
            expires_at, key = heapq.heappop(self._expiries)
            entry = self._data.get(key)
            if entry is not None and entry[1] == expires_at:
                del self._data[key]

    def _put(self, key: str, value: str, expires_at: float | None) -> None:
        previous = self._data.get(key)
        self._data[key] = (value, expires_at)
        if expires_at is not None and (previous is None or previous[1] != expires_at):
            heapq.heappush(self._expiries, (expires_at, key))

    def _live(self, key: str) -> tuple[str, float | None] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return entry

    async def get(self, key: str) -> str | None:
        entry = self._live(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: str) -> None:
        self._purge_expired()
        self._put(key, value, None)

    async def set_with_expiry(self, key: str, value: str, seconds: int) -> None:
        self._purge_expired()
        self._put(key, value, self._clock() + seconds)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def increment_with_expiry(
        self,
        key: str,
        seconds: int,
        ceiling: int | None = None,
    ) -> int:
        self._purge_expired()
        entry = self._live(key)
        if entry is None:
            current, expires_at = 0, self._clock() + seconds
        else:
            current, expires_at = int(entry[0]), entry[1]

        if ceiling is not None and current >= ceiling:
            return current + 1

        self._put(key, str(current + 1), expires_at)
        return current + 1

    async def ping(self) -> bool:
        return True
