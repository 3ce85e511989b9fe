"""Abstract key-value store shared by the proxy pool and the rate limiter.

Backends raise ``StoreUnavailableError`` for any failed round trip so callers
can degrade (fall back to in-memory state, or fail open) without knowing which
backend is wired in.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """String key-value store with per-key expiry."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value stored at *key*, or ``None`` when absent/expired."""
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store *value* at *key* without expiry."""
        ...

    @abstractmethod
    async def set_with_expiry(self, key: str, value: str, seconds: int) -> None:
        """Store *value* at *key*, expiring after *seconds*."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete *key*. Returns ``True`` if a key was removed."""
        ...

    @abstractmethod
    async def increment_with_expiry(
        self,
        key: str,
        seconds: int,
        ceiling: int | None = None,
    ) -> int:
        """Atomically increment the integer counter at *key*.

        A counter created by this call expires after *seconds*. When *ceiling*
        is given and the counter already sits at or above it, the counter is
        left untouched and the value it would have reached is returned, so
        ``result <= ceiling`` holds exactly when the increment was applied.

        Parameters
        ----------
        key:
            Counter key.
        seconds:
            Expiry applied when the counter is created.
        ceiling:
            Optional upper bound on the stored count.

        Returns
        -------
        int
            The post-increment count (or the would-be count when refused).
        """
        ...

    @abstractmethod
    async def ping(self) -> bool:
        """Return ``True`` if the backend is reachable."""
        ...

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
        return None
