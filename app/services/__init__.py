"""
app/services package marker.
"""

from app.services.scrape_service import ScrapeService, build_requests, get_scrape_service

__all__ = [
    "ScrapeService",
    "build_requests",
    "get_scrape_service",
]
