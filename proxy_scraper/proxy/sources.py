"""Proxy sources and the provider registry.

A source supplies candidate endpoints for the pool. Sources are registered
by ``ProviderType`` so new providers plug in without touching selection
logic; only the file-backed free provider ships today.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from proxy_scraper.middleware.error_handler import ProxySourceError
from proxy_scraper.proxy.parser import parse_proxies_from_file
from proxy_scraper.proxy.types import ProviderType, ProxyEndpoint

logger = logging.getLogger(__name__)


class ProxySource(ABC):
    """Supplies egress endpoints. Subclasses set ``provider_type``."""

    provider_type: ProviderType

    @abstractmethod
    async def load_all(self) -> list[ProxyEndpoint]:
        """Return every endpoint this source knows about.

        Raises
        ------
        ProxySourceError
            If the source cannot produce any endpoints.
        """
        ...


class FileProxySource(ProxySource):
    """Free proxy list loaded from a local text or YAML file.

    The file is re-read on every ``load_all()`` call so a refresh picks up
    edits made while the service is running.
    """

    provider_type = ProviderType.FREE

    def __init__(self, path: str | Path, source_label: str = "free-proxy-list.net") -> None:
        self._path = Path(path)
        self._source_label = source_label

    async def load_all(self) -> list[ProxyEndpoint]:
        proxies = parse_proxies_from_file(self._path, self.provider_type)
        if not proxies:
            raise ProxySourceError(f"No proxies loaded from {self._path}")

        checked_at = datetime.now(timezone.utc).isoformat()
        for proxy in proxies:
            proxy.metadata.setdefault("source", self._source_label)
            proxy.metadata.setdefault("last_checked", checked_at)
            proxy.metadata.setdefault("reliability", "low")

        logger.info("Loaded %d free proxies from %s", len(proxies), self._path)
        return proxies


class ProxySourceRegistry:
    """Registry that maps provider types to their source implementations."""

    def __init__(self) -> None:
        self._sources: dict[ProviderType, ProxySource] = {}

    def register(self, source: ProxySource) -> None:
        """Register a source for its declared ``provider_type``.

        Raises
        ------
        ValueError
            If a source for the same provider type is already registered.
        """
        provider_type = source.provider_type
        if provider_type in self._sources:
            raise ValueError(
                f"Proxy source for provider '{provider_type.value}' is already registered"
            )
        self._sources[provider_type] = source
        logger.info("Registered proxy source for provider '%s'", provider_type.value)

    def get(self, provider_type: ProviderType) -> ProxySource:
        """Return the source for *provider_type*.

        Raises
        ------
        ProxySourceError
            If no source is registered for the given provider type.
        """
        try:
            return self._sources[provider_type]
        except KeyError:
            raise ProxySourceError(
                f"No proxy source registered for provider '{provider_type.value}'",
                provider=provider_type.value,
            ) from None

    def list_types(self) -> list[ProviderType]:
        """Return a list of all registered provider types."""
        return list(self._sources.keys())
