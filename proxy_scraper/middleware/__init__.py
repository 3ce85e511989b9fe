"""Middleware package — error hierarchy and request ID."""

from proxy_scraper.middleware.error_handler import (
    FetchError,
    InvalidInputError,
    PoolExhaustedError,
    ProxySourceError,
    RateLimitedError,
    ScraperError,
    ScrapingError,
    StoreUnavailableError,
    register_error_handlers,
)
from proxy_scraper.middleware.request_id import RequestIdMiddleware, request_id_var

__all__ = [
    "FetchError",
    "InvalidInputError",
    "PoolExhaustedError",
    "ProxySourceError",
    "RateLimitedError",
    "RequestIdMiddleware",
    "ScraperError",
    "ScrapingError",
    "StoreUnavailableError",
    "register_error_handlers",
    "request_id_var",
]
