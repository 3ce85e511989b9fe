"""Proxy pool package — endpoint model, list parsing, sources, and rotation."""

from proxy_scraper.proxy.manager import ProxyPoolManager
from proxy_scraper.proxy.sources import FileProxySource, ProxySource, ProxySourceRegistry
from proxy_scraper.proxy.types import ProviderType, ProxyEndpoint

__all__ = [
    "FileProxySource",
    "ProviderType",
    "ProxyEndpoint",
    "ProxyPoolManager",
    "ProxySource",
    "ProxySourceRegistry",
]
