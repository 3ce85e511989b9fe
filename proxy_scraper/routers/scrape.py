"""Scrape endpoint.

- POST /scrape — fetch a URL through the proxy pool and return its HTML and headers
"""

from __future__ import annotations

import logging

from fastapi import APIRouter

from proxy_scraper.middleware.error_handler import ScrapingError
from proxy_scraper.models.requests import ScrapeRequest
from proxy_scraper.models.responses import ApiResponse, ScrapePayload
from proxy_scraper.services.scrape_service import ScrapeOrchestrator

logger = logging.getLogger(__name__)


def create_scrape_router(*, orchestrator: ScrapeOrchestrator) -> APIRouter:
    """Factory that creates the scrape router with an injected orchestrator."""
    scrape_router = APIRouter(tags=["scrape"])

    @scrape_router.post("/scrape")
    async def scrape(body: ScrapeRequest) -> dict:
        """Scrape ``body.url``. 400 on invalid input, 500 once every retry failed."""
        logger.info("Received scrape request for URL: %s", body.url, extra={"target_url": body.url})

        result = await orchestrator.scrape(
            body.url,
            timeout_ms=body.timeout,
            requests_per_second=body.requests_per_second,
        )
        if not result.success:
            raise ScrapingError(
                result.error or ScrapingError.message,
                outcome=result.outcome.value,
                attempts=result.attempts,
            )

        return ApiResponse(
            success=True,
            data=ScrapePayload(html=result.html, headers=result.headers).model_dump(),
        ).model_dump()

    return scrape_router
