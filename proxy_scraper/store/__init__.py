"""Key-value store backends for pool snapshots and rate-limit counters."""

from proxy_scraper.store.base import KeyValueStore
from proxy_scraper.store.memory import MemoryStore
from proxy_scraper.store.redis_store import RedisStore

__all__ = ["KeyValueStore", "MemoryStore", "RedisStore"]
