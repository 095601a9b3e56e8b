"""
Config helpers for regulatory scraping.
"""

from app.scraping.config.loader import get_scrape_settings, load_source_configs
from app.scraping.config.models import (
    ExtractionRules,
    FieldRule,
    SchedulerConfig,
    ScrapeSettings,
    SourceConfig,
)

__all__ = [
    "ExtractionRules",
    "FieldRule",
    "SchedulerConfig",
    "ScrapeSettings",
    "SourceConfig",
    "get_scrape_settings",
    "load_source_configs",
]
