"""
tests/conftest.py

Shared fakes and fixtures for the scrape orchestration tests.

Nothing here touches the network or a database: strategies are scripted,
robots documents are served from memory and sleeps are recorded instead of
awaited.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from string import Template
from typing import Any

import pytest

from app.scraping.config import SchedulerConfig, ScrapeSettings, SourceConfig, load_source_configs
from app.scraping.config.loader import DEFAULT_SOURCES_CONFIG_PATH
from app.scraping.errors import StrategyError
from app.scraping.strategies.base import ExtractionStrategy, FetchedPage
from app.scraping.strategies.mock import FIXTURES_DIR
from app.scraping.types import ErrorKind, FetchTarget, StrategyKind


# ---------------------------------------------------------------------------
# Scripted strategies
# ---------------------------------------------------------------------------


class InFlightCounter:
    """Tracks how many retrievals run at once across strategies."""

    def __init__(self) -> None:
        self.current = 0
        self.peak = 0

    def enter(self) -> None:
        self.current += 1
        self.peak = max(self.peak, self.current)

    def leave(self) -> None:
        self.current -= 1


class ScriptedStrategy(ExtractionStrategy):
    """
    Replays a fixed script of page bodies and failures.

    Script entries are either an HTML string or an `ErrorKind`. The last
    entry repeats once the script is exhausted.
    """

    def __init__(
        self,
        kind: StrategyKind,
        script: list[str | ErrorKind],
        *,
        delay_seconds: float = 0.0,
        counter: InFlightCounter | None = None,
        retry_after: float | None = None,
    ) -> None:
        self.kind = kind  # type: ignore[misc]
        self._script = list(script)
        self._delay_seconds = delay_seconds
        self._counter = counter
        self._retry_after = retry_after
        self.calls: list[str] = []
        self.closed = False

    async def _retrieve(self, target: FetchTarget, config: SourceConfig) -> FetchedPage:
        self.calls.append(target.target_key)
        step = self._script[min(len(self.calls), len(self._script)) - 1]
        if self._counter is not None:
            self._counter.enter()
        try:
            await asyncio.sleep(self._delay_seconds)
        finally:
            if self._counter is not None:
                self._counter.leave()
        if isinstance(step, ErrorKind):
            raise StrategyError(
                f"scripted {step.value}",
                kind=step,
                url=target.url,
                retry_after=self._retry_after if step is ErrorKind.RATE_LIMITED else None,
            )
        return FetchedPage(content=step, status_code=200)

    async def aclose(self) -> None:
        self.closed = True


class SleepRecorder:
    """Stand-in for `asyncio.sleep` that records delays and yields once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def render_fixture(source: str, target_key: str) -> str:
    template = (FIXTURES_DIR / f"{source}.html").read_text(encoding="utf-8")
    return Template(template).safe_substitute(target_key=target_key)


@pytest.fixture()
def sources() -> dict[str, SourceConfig]:
    project_root = Path(__file__).resolve().parents[1]
    return load_source_configs(config_path=str(project_root / DEFAULT_SOURCES_CONFIG_PATH))


@pytest.fixture()
def fixture_html() -> Callable[[str, str], str]:
    return render_fixture


@pytest.fixture()
def fast_config() -> SchedulerConfig:
    return SchedulerConfig(
        concurrency=2,
        inter_request_delay_ms=0,
        max_retries_per_request=2,
        backoff_initial_seconds=1.0,
        backoff_multiplier=2.0,
        backoff_max_seconds=30.0,
        user_agent="TestBot/1.0",
    )


@pytest.fixture()
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture()
def in_flight() -> InFlightCounter:
    return InFlightCounter()


@pytest.fixture()
def make_strategy() -> Callable[..., ScriptedStrategy]:
    def _make(kind: StrategyKind, script: list[str | ErrorKind], **kwargs: Any) -> ScriptedStrategy:
        return ScriptedStrategy(kind, script, **kwargs)

    return _make


@pytest.fixture()
def settings() -> ScrapeSettings:
    project_root = Path(__file__).resolve().parents[1]
    return ScrapeSettings(
        sources_config_path=str(project_root / DEFAULT_SOURCES_CONFIG_PATH),
        user_agent="TestBot/1.0",
        concurrency=1,
        inter_request_delay_ms=0,
        max_retries=2,
        backoff_initial_seconds=0.1,
        backoff_multiplier=2.0,
        timeout_seconds=5.0,
        render_timeout_seconds=5.0,
        robots_failure_policy="open",
        healing_enabled=True,
        healing_min_confidence=80,
        healing_adapter="heuristic",
        firecrawl_api_key=None,
        firecrawl_base_url="https://api.firecrawl.test",
        llm_model="gpt-4o-mini",
    )
