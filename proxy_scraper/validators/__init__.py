"""Input validators for scrape requests."""

from proxy_scraper.validators.url_validator import is_valid_url, validate_scrape_input

__all__ = ["is_valid_url", "validate_scrape_input"]
