"""Validation of scrape inputs: target URL and per-request limits."""

from __future__ import annotations

from urllib.parse import urlparse

import httpx

from proxy_scraper.middleware.error_handler import InvalidInputError

_ALLOWED_SCHEMES = {"http", "https"}

MIN_REQUESTS_PER_SECOND = 1
MAX_REQUESTS_PER_SECOND = 10


def is_valid_url(url: object) -> bool:
    """Return True for an absolute http/https URL with a host and a usable port."""
    if not isinstance(url, str) or not url.strip():
        return False
    try:
        parsed = urlparse(url)
        parsed.port  # raises ValueError for a non-numeric or out-of-range port
        httpx.URL(url)
    except (ValueError, httpx.InvalidURL):
        return False
    return parsed.scheme in _ALLOWED_SCHEMES and bool(parsed.hostname)


def is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def is_within_range(value: object, low: int, high: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and low <= value <= high


def validate_scrape_input(
    url: object,
    timeout_ms: object = None,
    requests_per_second: object = None,
) -> None:
    """Reject malformed scrape input before any proxy is touched.

    Raises
    ------
    InvalidInputError
        If the URL is missing/invalid, the timeout is not a positive integer,
        or the rate is outside 1..10.
    """
    if not url:
        raise InvalidInputError("URL is required")
    if not is_valid_url(url):
        raise InvalidInputError("Invalid URL format", url=str(url))
    if timeout_ms is not None and not is_positive_int(timeout_ms):
        raise InvalidInputError("Timeout must be a positive number")
    if requests_per_second is not None and not is_within_range(
        requests_per_second, MIN_REQUESTS_PER_SECOND, MAX_REQUESTS_PER_SECOND
    ):
        raise InvalidInputError(
            f"Requests per second must be a number between "
            f"{MIN_REQUESTS_PER_SECOND} and {MAX_REQUESTS_PER_SECOND}"
        )
