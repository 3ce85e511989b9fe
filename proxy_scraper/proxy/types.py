"""Proxy data models for the proxy pool."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ProviderType(str, Enum):
    """Origin of a proxy endpoint."""

    FREE = "free"
    PREMIUM = "premium"
    ROTATING = "rotating"


@dataclass
class ProxyEndpoint:
    """A single egress proxy. Identity is ``(address, port)``."""

    address: str
    port: int
    scheme: str = "http"  # http, https
    provider: ProviderType = ProviderType.FREE
    metadata: dict[str, Any] = field(default_factory=dict)
    success_count: int = 0
    failure_count: int = 0

    @property
    def key(self) -> str:
        return f"{self.address}:{self.port}"

    def proxy_url(self, scheme: str) -> str:
        """Proxy URL for connecting to this endpoint over *scheme*."""
        return f"{scheme}://{self.address}:{self.port}"

    def to_dict(self) -> dict[str, Any]:
        """Serializable form for the persisted snapshot (counters excluded)."""
        return {
            "address": self.address,
            "port": self.port,
            "scheme": self.scheme,
            "provider": self.provider.value,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProxyEndpoint:
        return cls(
            address=str(data["address"]),
            port=int(data["port"]),
            scheme=data.get("scheme", "http"),
            provider=ProviderType(data.get("provider", ProviderType.FREE.value)),
            metadata=dict(data.get("metadata") or {}),
        )
