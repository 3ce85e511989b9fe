"""HTTP routers."""

from proxy_scraper.routers.health import create_health_router
from proxy_scraper.routers.scrape import create_scrape_router

__all__ = ["create_health_router", "create_scrape_router"]
