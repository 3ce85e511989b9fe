"""Outbound fetch through proxies."""

from proxy_scraper.fetch.strategy import FetchOptions, FetchResponse, FetchStrategy, normalize_headers

__all__ = ["FetchOptions", "FetchResponse", "FetchStrategy", "normalize_headers"]
