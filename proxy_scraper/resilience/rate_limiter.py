"""Per-proxy fixed-window rate limiter.

Each proxy gets one counter per wall-clock second, stored under
``rate_limit:{address}:{port}:{epoch_second}`` with a short TTL so old
windows disappear on their own. Windows reset hard at the second boundary;
a burst right after a boundary is allowed, there is no sliding smoothing.

Key behaviors:
- check() is read-only: allowed while the window count is below the ceiling
- admit() is one atomic guarded increment; a refused admission leaves the
  counter untouched
- Both fail open: if the store is unreachable or the counter is corrupt the
  request is allowed
- acquire() runs both and raises RateLimitedError on refusal
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from proxy_scraper.constants import RATE_LIMIT_KEY_PREFIX
from proxy_scraper.middleware.error_handler import RateLimitedError, StoreUnavailableError
from proxy_scraper.proxy.types import ProxyEndpoint
from proxy_scraper.store.base import KeyValueStore

logger = logging.getLogger(__name__)


class ProxyRateLimiter:
    """Fixed one-second window admission control per proxy.

    Args:
        store: Shared counter store.
        key_ttl_seconds: Expiry applied to each window counter.
        clock: Wall-clock source in epoch seconds.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key_ttl_seconds: int = 2,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._key_ttl_seconds = key_ttl_seconds
        self._clock = clock

    def window_key(self, proxy: ProxyEndpoint) -> str:
        """Counter key for *proxy* in the current one-second window."""
        epoch_second = int(self._clock())
        return f"{RATE_LIMIT_KEY_PREFIX}:{proxy.address}:{proxy.port}:{epoch_second}"

    async def check(self, proxy: ProxyEndpoint, ceiling: int) -> bool:
        """Return ``True`` if *proxy* is below *ceiling* in the current window."""
        key = self.window_key(proxy)
        try:
            raw = await self._store.get(key)
            count = int(raw) if raw else 0
        except (StoreUnavailableError, ValueError) as exc:
            logger.warning("Rate limit check failed for %s, allowing: %s", proxy.key, exc)
            return True

        if count >= ceiling:
            logger.info(
                "Rate limit exceeded for proxy %s - %d/%d requests",
                proxy.key,
                count,
                ceiling,
            )
            return False
        return True

    async def admit(self, proxy: ProxyEndpoint, ceiling: int) -> bool:
        """Consume one slot of *proxy*'s current window if one is free."""
        key = self.window_key(proxy)
        try:
            count = await self._store.increment_with_expiry(
                key, self._key_ttl_seconds, ceiling=ceiling
            )
        except (StoreUnavailableError, ValueError) as exc:
            logger.warning("Rate limit admission failed for %s, allowing: %s", proxy.key, exc)
            return True

        if count > ceiling:
            logger.info(
                "Rate limit admission refused for proxy %s - window full at %d",
                proxy.key,
                ceiling,
            )
            return False

        logger.debug("Rate limit incremented for proxy %s - %d/%d requests", proxy.key, count, ceiling)
        return True

    async def acquire(self, proxy: ProxyEndpoint, ceiling: int) -> None:
        """Check, then admit, *proxy* for the current window.

        Raises
        ------
        RateLimitedError
            If the window is already full or the admission is refused.
        """
        if not await self.check(proxy, ceiling) or not await self.admit(proxy, ceiling):
            raise RateLimitedError(proxy=proxy.key, ceiling=ceiling)

    def seconds_until_next_window(self) -> float:
        """Time left in the current one-second window."""
        now = self._clock()
        return max(0.0, int(now) + 1 - now)
