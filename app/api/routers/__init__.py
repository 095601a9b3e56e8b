"""
app/api/routers package marker.
"""

from app.api.routers.scrape import router as scrape_router

__all__ = [
    "scrape_router",
]
