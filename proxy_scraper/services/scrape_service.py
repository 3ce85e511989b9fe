"""Scrape orchestrator — retries one target URL across rotating proxies.

Per request the loop runs: select proxy → rate-limit check → admit → fetch →
evaluate, until a response in 200..399 arrives, the attempt budget is spent,
the wall-clock budget runs out, or the pool turns out to be empty.

Rules:
- The deadline is checked only at the top of the loop. An in-flight fetch is
  never cancelled, so a session can overrun its budget by at most one fetch's
  own timeout.
- A rate-limited proxy is skipped without consuming an attempt. After a full
  pool's worth of consecutive skips the session waits for the next one-second
  window (bounded by the deadline) instead of spinning.
- Fetch errors and non-success statuses mark the proxy failed. Only fetch
  errors consume an attempt.
- ``PoolExhaustedError`` ends the session immediately.
"""

from __future__ import annotations

import asyncio
import logging
import time

from proxy_scraper.constants import SUCCESS_STATUS_MAX, SUCCESS_STATUS_MIN
from proxy_scraper.fetch.strategy import FetchOptions, FetchStrategy
from proxy_scraper.middleware.error_handler import FetchError, PoolExhaustedError, RateLimitedError
from proxy_scraper.models.requests import ScrapeResult, ScrapeSession, SessionOutcome
from proxy_scraper.proxy.manager import ProxyPoolManager
from proxy_scraper.resilience.rate_limiter import ProxyRateLimiter
from proxy_scraper.validators.url_validator import validate_scrape_input

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 100
NO_PROXY_ERROR = "all proxies exhausted"


class ScrapeOrchestrator:
    """Runs the retry/timeout state machine for scrape requests.

    Dependencies are injected via the constructor so the orchestrator is
    testable without a real store or network calls.
    """

    def __init__(
        self,
        *,
        pool: ProxyPoolManager,
        rate_limiter: ProxyRateLimiter,
        fetch_strategy: FetchStrategy,
        fetch_options: FetchOptions | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        default_timeout_ms: int = 30000,
        default_requests_per_second: int = 1,
    ) -> None:
        self._pool = pool
        self._rate_limiter = rate_limiter
        self._fetch_strategy = fetch_strategy
        self._fetch_options = fetch_options or FetchOptions()
        self._max_attempts = max_attempts
        self._default_timeout_ms = default_timeout_ms
        self._default_requests_per_second = default_requests_per_second

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def scrape(
        self,
        url: str,
        timeout_ms: int | None = None,
        requests_per_second: int | None = None,
    ) -> ScrapeResult:
        """Fetch *url* through the proxy pool.

        Raises
        ------
        InvalidInputError
            If the URL or limits are malformed. Nothing else is raised:
            every other failure comes back as an unsuccessful ``ScrapeResult``.
        """
        validate_scrape_input(url, timeout_ms, requests_per_second)

        session = ScrapeSession(
            url=url,
            timeout_ms=timeout_ms or self._default_timeout_ms,
            requests_per_second=requests_per_second or self._default_requests_per_second,
        )
        logger.info(
            "Starting scrape for %s (timeout=%dms, rate=%d req/s)",
            url,
            session.timeout_ms,
            session.requests_per_second,
            extra={"target_url": url},
        )

        outcome = SessionOutcome.ATTEMPTS_EXHAUSTED
        while session.attempts < self._max_attempts:
            if time.monotonic() >= session.deadline:
                outcome = SessionOutcome.TIMED_OUT
                break

            try:
                proxy = await self._pool.next()
            except PoolExhaustedError as exc:
                session.last_error = exc.message
                outcome = SessionOutcome.POOL_EXHAUSTED
                break

            try:
                await self._rate_limiter.acquire(proxy, session.requests_per_second)
            except RateLimitedError:
                await self._after_skip(session)
                continue
            session.consecutive_skips = 0

            try:
                response = await self._fetch_strategy.fetch(url, proxy, self._fetch_options)
            except FetchError as exc:
                session.attempts += 1
                session.last_error = exc.message
                await self._pool.mark_failed(proxy)
                logger.info(
                    "Scrape attempt %d via %s failed: %s",
                    session.attempts,
                    proxy.key,
                    exc.message,
                    extra={
                        "target_url": url,
                        "proxy_used": proxy.key,
                        "attempt": session.attempts,
                        "error_reason": exc.message,
                    },
                )
                continue

            if SUCCESS_STATUS_MIN <= response.status_code <= SUCCESS_STATUS_MAX:
                self._pool.mark_success(proxy)
                elapsed_ms = session.elapsed_ms()
                logger.info(
                    "Scrape of %s succeeded via %s (%s) in %.0fms",
                    url,
                    proxy.key,
                    response.protocol_used,
                    elapsed_ms,
                    extra={
                        "target_url": url,
                        "proxy_used": proxy.key,
                        "protocol": response.protocol_used,
                        "status_code": response.status_code,
                        "duration_ms": round(elapsed_ms),
                    },
                )
                return ScrapeResult(
                    success=True,
                    outcome=SessionOutcome.SUCCESS,
                    html=response.body,
                    headers=response.headers,
                    attempts=session.attempts + 1,
                    elapsed_ms=elapsed_ms,
                )

            session.last_error = f"HTTP {response.status_code}"
            await self._pool.mark_failed(proxy)
            logger.info(
                "Scrape via %s returned HTTP %d",
                proxy.key,
                response.status_code,
                extra={"target_url": url, "proxy_used": proxy.key, "status_code": response.status_code},
            )

        return self._failure(session, outcome)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _after_skip(self, session: ScrapeSession) -> None:
        """Count a rate-limited skip; wait for the next window once every proxy was skipped."""
        session.skips += 1
        session.consecutive_skips += 1
        if session.consecutive_skips < max(self._pool.size, 1):
            return

        session.consecutive_skips = 0
        wait = min(self._rate_limiter.seconds_until_next_window(), session.remaining())
        if wait > 0:
            logger.debug("All proxies rate limited, waiting %.3fs for next window", wait)
            await asyncio.sleep(wait)

    def _failure(self, session: ScrapeSession, outcome: SessionOutcome) -> ScrapeResult:
        error = session.last_error or NO_PROXY_ERROR
        elapsed_ms = session.elapsed_ms()
        logger.warning(
            "Scrape of %s failed (%s) after %d attempts, %d rate-limited skips: %s",
            session.url,
            outcome.value,
            session.attempts,
            session.skips,
            error,
            extra={
                "target_url": session.url,
                "attempt": session.attempts,
                "error_reason": error,
                "duration_ms": round(elapsed_ms),
            },
        )
        return ScrapeResult(
            success=False,
            outcome=outcome,
            error=error,
            attempts=session.attempts,
            elapsed_ms=elapsed_ms,
        )
