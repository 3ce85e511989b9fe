"""Scrape orchestration services."""

from proxy_scraper.services.scrape_service import ScrapeOrchestrator

__all__ = ["ScrapeOrchestrator"]
