"""
app/schemas package marker.
"""

from app.schemas.scrape import (
    DateRangeBody,
    PerRequestDetailResponse,
    ScrapeBatchResponse,
    ScrapeOptionsBody,
    ScrapeRequestBody,
)

__all__ = [
    "DateRangeBody",
    "PerRequestDetailResponse",
    "ScrapeBatchResponse",
    "ScrapeOptionsBody",
    "ScrapeRequestBody",
]
