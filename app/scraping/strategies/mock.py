"""
Deterministic fixture-backed retrieval for test mode.
"""

from __future__ import annotations

from pathlib import Path
from string import Template

from app.scraping.config.models import SourceConfig
from app.scraping.errors import StrategyError
from app.scraping.strategies.base import ExtractionStrategy, FetchedPage
from app.scraping.types import ErrorKind, FetchTarget, StrategyKind

FIXTURES_DIR = Path(__file__).resolve().parents[1] / "fixtures"


class MockStrategy(ExtractionStrategy):
    """
    Serve packaged HTML fixtures, one per source, with `$target_key` filled in.
    """

    kind = StrategyKind.MOCK

    def __init__(
        self,
        *,
        fixtures_dir: Path | None = None,
        documents: dict[str, str] | None = None,
    ) -> None:
        self._fixtures_dir = fixtures_dir or FIXTURES_DIR
        self._documents = dict(documents or {})

    async def _retrieve(self, target: FetchTarget, config: SourceConfig) -> FetchedPage:
        template = self._documents.get(target.source)
        if template is None:
            path = self._fixtures_dir / f"{target.source}.html"
            if not path.exists():
                raise StrategyError(
                    f"no test fixture for source '{target.source}'",
                    kind=ErrorKind.STRATEGY_UNAVAILABLE,
                    url=target.url,
                )
            template = path.read_text(encoding="utf-8")
        content = Template(template).safe_substitute(target_key=target.target_key)
        return FetchedPage(content=content, status_code=200)
