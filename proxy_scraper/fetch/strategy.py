"""Dual-protocol fetch through a single proxy.

One GET is attempted through the proxy's native scheme first and, if that
attempt fails, once more through the other scheme. An attempt fails on any
transport error, on its own timeout, on too many redirects, or on a 5xx
response. Statuses below 500 come back as data; deciding whether a 404 or a
403 counts as success is the orchestrator's job.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

import httpx

from proxy_scraper.constants import DEFAULT_HEADERS, DEFAULT_MAX_REDIRECTS, DEFAULT_USER_AGENT
from proxy_scraper.middleware.error_handler import FetchError
from proxy_scraper.proxy.types import ProxyEndpoint

logger = logging.getLogger(__name__)


@dataclass
class FetchOptions:
    """Per-fetch limits. ``timeout_ms`` bounds each scheme attempt separately."""

    timeout_ms: int = 10000
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    user_agent: str = DEFAULT_USER_AGENT


@dataclass
class FetchResponse:
    """Outcome of a fetch that produced a response (status < 500)."""

    status_code: int
    status_text: str
    body: str
    elapsed_ms: float
    protocol_used: str
    proxy: ProxyEndpoint
    headers: dict[str, str] = field(default_factory=dict)


def normalize_headers(headers: httpx.Headers) -> dict[str, str]:
    """Lowercase header names and join repeated headers with ``", "``."""
    normalized: dict[str, str] = {}
    for name, value in headers.multi_items():
        name = name.lower()
        if name in normalized:
            normalized[name] = f"{normalized[name]}, {value}"
        else:
            normalized[name] = value
    return normalized


def schemes_to_try(native_scheme: str) -> list[str]:
    """Native scheme first, then the other one."""
    if native_scheme == "https":
        return ["https", "http"]
    return ["http", "https"]


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class FetchStrategy:
    """Performs outbound GETs through a proxy with scheme fallback."""

    def __init__(self, default_options: FetchOptions | None = None) -> None:
        self._default_options = default_options or FetchOptions()

    async def fetch(
        self,
        url: str,
        proxy: ProxyEndpoint,
        options: FetchOptions | None = None,
    ) -> FetchResponse:
        """Fetch *url* through *proxy*.

        Raises
        ------
        FetchError
            After both schemes have failed, carrying the last error text.
        """
        options = options or self._default_options
        start = time.monotonic()
        last_error = "no attempt made"

        for scheme in schemes_to_try(proxy.scheme):
            logger.debug(
                "Attempting %s request to %s via %s",
                scheme.upper(),
                url,
                proxy.key,
                extra={"target_url": url, "proxy_used": proxy.key, "protocol": scheme},
            )
            try:
                response = await asyncio.wait_for(
                    self._fetch_with_scheme(url, proxy, scheme, options),
                    timeout=options.timeout_ms / 1000.0,
                )
            except asyncio.TimeoutError:
                last_error = f"Timed out after {options.timeout_ms}ms"
            except (httpx.HTTPError, httpx.InvalidURL, FetchError) as exc:
                last_error = _describe(exc)
            else:
                return FetchResponse(
                    status_code=response.status_code,
                    status_text=response.reason_phrase,
                    headers=normalize_headers(response.headers),
                    body=response.text,
                    elapsed_ms=(time.monotonic() - start) * 1000,
                    protocol_used=scheme,
                    proxy=proxy,
                )

            logger.info(
                "%s request failed via %s: %s",
                scheme.upper(),
                proxy.key,
                last_error,
                extra={"proxy_used": proxy.key, "protocol": scheme, "error_reason": last_error},
            )

        elapsed_ms = (time.monotonic() - start) * 1000
        logger.warning(
            "HTTP request failed to %s via %s after %.0fms: %s",
            url,
            proxy.key,
            elapsed_ms,
            last_error,
            extra={"target_url": url, "proxy_used": proxy.key, "duration_ms": round(elapsed_ms)},
        )
        raise FetchError(last_error)

    async def _fetch_with_scheme(
        self,
        url: str,
        proxy: ProxyEndpoint,
        scheme: str,
        options: FetchOptions,
    ) -> httpx.Response:
        """Single GET through *proxy* reached over *scheme*. 5xx raises ``FetchError``."""
        async with httpx.AsyncClient(
            proxy=proxy.proxy_url(scheme),
            timeout=httpx.Timeout(options.timeout_ms / 1000.0),
            follow_redirects=options.max_redirects > 0,
            max_redirects=options.max_redirects,
        ) as client:
            response = await client.get(
                url,
                headers={"User-Agent": options.user_agent, **DEFAULT_HEADERS},
            )

        if response.status_code >= 500:
            raise FetchError(f"HTTP {response.status_code}: {response.reason_phrase}")
        return response
