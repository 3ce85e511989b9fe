"""Configuration module — settings."""

from proxy_scraper.config.settings import ScraperSettings

__all__ = ["ScraperSettings"]
