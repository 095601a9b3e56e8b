"""
Source adapters: typed normalization per regulatory source.
"""

from app.scraping.adapters.base import (
    SourceAdapter,
    normalize_stock_code,
    parse_decimal,
    parse_number,
    parse_percentage,
)
from app.scraping.adapters.disclosures import DisclosuresAdapter
from app.scraping.adapters.filings import FilingsAdapter, categorize_filing, extract_tags
from app.scraping.adapters.holdings import HoldingsAdapter
from app.scraping.adapters.statistics import StatisticsAdapter

__all__ = [
    "DisclosuresAdapter",
    "FilingsAdapter",
    "HoldingsAdapter",
    "SourceAdapter",
    "StatisticsAdapter",
    "categorize_filing",
    "extract_tags",
    "normalize_stock_code",
    "parse_decimal",
    "parse_number",
    "parse_percentage",
]
