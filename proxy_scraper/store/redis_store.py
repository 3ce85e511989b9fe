"""Redis-backed key-value store (``redis.asyncio``).

Every Redis or connection error is translated into ``StoreUnavailableError``.
The guarded increment runs as a single Lua script so concurrent admissions
against the same window key cannot lose updates.
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from proxy_scraper.middleware.error_handler import StoreUnavailableError
from proxy_scraper.store.base import KeyValueStore

logger = logging.getLogger(__name__)

# KEYS[1] counter key; ARGV[1] expiry seconds; ARGV[2] ceiling (-1 = none)
_GUARDED_INCR = """
local current = tonumber(redis.call('GET', KEYS[1]) or '0')
local ceiling = tonumber(ARGV[2])
if ceiling >= 0 and current >= ceiling then
    return current + 1
end
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return count
"""


class RedisStore(KeyValueStore):
    """Key-value store backed by a Redis server.

    Parameters
    ----------
    url:
        Redis connection URL, e.g. ``redis://localhost:6379/0``.
    client:
        Pre-built ``redis.asyncio.Redis`` client (tests inject a mock here).
    """

    def __init__(self, url: str = "redis://localhost:6379/0", client: aioredis.Redis | None = None) -> None:
        self._url = url
        self._client = client or aioredis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except (RedisError, OSError) as exc:
            raise StoreUnavailableError(f"Redis GET {key} failed: {exc}") from exc

    async def set(self, key: str, value: str) -> None:
        try:
            await self._client.set(key, value)
        except (RedisError, OSError) as exc:
            raise StoreUnavailableError(f"Redis SET {key} failed: {exc}") from exc

    async def set_with_expiry(self, key: str, value: str, seconds: int) -> None:
        try:
            await self._client.set(key, value, ex=seconds)
        except (RedisError, OSError) as exc:
            raise StoreUnavailableError(f"Redis SET {key} failed: {exc}") from exc

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self._client.delete(key))
        except (RedisError, OSError) as exc:
            raise StoreUnavailableError(f"Redis DEL {key} failed: {exc}") from exc

    async def increment_with_expiry(
        self,
        key: str,
        seconds: int,
        ceiling: int | None = None,
    ) -> int:
        try:
            result = await self._client.eval(
                _GUARDED_INCR, 1, key, seconds, -1 if ceiling is None else ceiling
            )
        except (RedisError, OSError) as exc:
            raise StoreUnavailableError(f"Redis INCR {key} failed: {exc}") from exc
        return int(result)

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as exc:
            logger.warning("Redis health check failed: %s", exc)
            return False

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Redis connection closed")
