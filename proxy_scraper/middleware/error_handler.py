"""Global error hierarchy and FastAPI exception handlers.

All scraper-specific errors extend ScraperError. The FastAPI exception handlers
catch these errors (plus Pydantic's RequestValidationError and unhandled exceptions)
and return a consistent JSON envelope: { success, data, error, meta }.

When diagnostics are enabled (any non-production environment) the handlers
attach the formatted stack trace under ``meta.stack``.
"""

from __future__ import annotations

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error hierarchy
# ---------------------------------------------------------------------------


class ScraperError(Exception):
    """Base error for all scraper-specific errors."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None, **kwargs: object) -> None:
        self.message = message or self.__class__.message
        self.details = kwargs
        super().__init__(self.message)


class InvalidInputError(ScraperError):
    """Malformed URL or out-of-range request parameter. Never retried."""

    status_code = 400
    message = "Invalid input"


class PoolExhaustedError(ScraperError):
    """Proxy source and persisted snapshot are both empty."""

    status_code = 503
    message = "Proxy pool exhausted — no proxies available"


class RateLimitedError(ScraperError):
    """Per-proxy admission denied for the current window."""

    status_code = 429
    message = "Proxy rate limit exceeded"


class FetchError(ScraperError):
    """Outbound fetch failed on every transport scheme."""

    status_code = 502
    message = "Upstream fetch failed"


class ScrapingError(ScraperError):
    """Scrape gave up after exhausting its attempt or timeout budget."""

    status_code = 500
    message = "Scraping failed"


class ProxySourceError(ScraperError):
    """A proxy source could not produce any endpoints."""

    status_code = 503
    message = "Proxy source unavailable"


class StoreUnavailableError(ScraperError):
    """The backing key-value store could not complete a round trip."""

    status_code = 503
    message = "Store unavailable"


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------


def _envelope(
    status_code: int,
    error: str,
    meta: dict | None = None,
) -> JSONResponse:
    """Build a JSON envelope error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "data": None,
            "error": error,
            "meta": meta,
        },
    )


def _with_stack(meta: dict | None, exc: BaseException) -> dict:
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return {**(meta or {}), "stack": stack}


def register_error_handlers(app: FastAPI, *, diagnostics: bool = False) -> None:
    """Wire up all exception handlers on the FastAPI application.

    Parameters
    ----------
    app:
        The application to register handlers on.
    diagnostics:
        Attach stack traces to error envelopes. Never enable in production.
    """

    async def _scraper_error_handler(_request: Request, exc: ScraperError) -> JSONResponse:
        meta = dict(exc.details) if exc.details else None
        if diagnostics:
            meta = _with_stack(meta, exc)
        return _envelope(exc.status_code, exc.message, meta=meta)

    async def _validation_error_handler(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        field_errors = [
            {
                "field": " -> ".join(str(loc) for loc in err["loc"]),
                "message": err["msg"],
                "type": err["type"],
            }
            for err in exc.errors()
        ]
        return _envelope(
            status_code=InvalidInputError.status_code,
            error=InvalidInputError.message,
            meta={"fields": field_errors},
        )

    async def _unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception: %s\n%s",
            exc,
            traceback.format_exc(),
        )
        if diagnostics:
            return _envelope(500, str(exc) or "Internal server error", meta=_with_stack(None, exc))
        return _envelope(status_code=500, error="Internal server error")

    app.add_exception_handler(ScraperError, _scraper_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)  # type: ignore[arg-type]
