"""Resilience components for the scraper service."""

from proxy_scraper.resilience.rate_limiter import ProxyRateLimiter

__all__ = ["ProxyRateLimiter"]
