"""
Page retrieval strategies.
"""

from app.scraping.strategies.base import ExtractionStrategy, FetchedPage
from app.scraping.strategies.headless_render import HeadlessRenderStrategy
from app.scraping.strategies.http_fetch import HTTPFetchStrategy
from app.scraping.strategies.mock import MockStrategy
from app.scraping.strategies.registry import StrategyRegistry
from app.scraping.strategies.rendering_api import RenderingAPIStrategy

__all__ = [
    "ExtractionStrategy",
    "FetchedPage",
    "HTTPFetchStrategy",
    "HeadlessRenderStrategy",
    "MockStrategy",
    "RenderingAPIStrategy",
    "StrategyRegistry",
]
