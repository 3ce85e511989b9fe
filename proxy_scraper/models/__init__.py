"""Public models for the scraper service."""

from proxy_scraper.models.requests import (
    ScrapeRequest,
    ScrapeResult,
    ScrapeSession,
    SessionOutcome,
)
from proxy_scraper.models.responses import ApiResponse, ScrapePayload

__all__ = [
    "ApiResponse",
    "ScrapePayload",
    "ScrapeRequest",
    "ScrapeResult",
    "ScrapeSession",
    "SessionOutcome",
]
