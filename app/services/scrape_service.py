"""
app/services/scrape_service.py

Service orchestration for regulatory scrape batches.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import date
from functools import lru_cache

from app.scraping.compliance import (
    ComplianceFailurePolicy,
    HTTPRobotsFetcher,
    RobotsFetcher,
    StaticRobotsFetcher,
)
from app.scraping.config import (
    SchedulerConfig,
    ScrapeSettings,
    SourceConfig,
    get_scrape_settings,
    load_source_configs,
)
from app.scraping.errors import ConfigError
from app.scraping.healing import (
    HeuristicSuggestionGenerator,
    OpenAISuggestionGenerator,
    SelectorHealer,
    SuggestionGenerator,
)
from app.scraping.scheduler import BatchScheduler
from app.scraping.storage import InMemoryRecordStorage, RecordStorage, SQLAlchemyRecordStorage
from app.scraping.strategies import (
    HeadlessRenderStrategy,
    HTTPFetchStrategy,
    MockStrategy,
    RenderingAPIStrategy,
    StrategyRegistry,
)
from app.scraping.types import (
    BatchReport,
    DateRange,
    RequestOptions,
    ScrapeRequest,
    StrategyKind,
)
from db.session import SessionLocal


def parse_strategy(value: str | None) -> StrategyKind | None:
    if value is None or not value.strip():
        return None
    try:
        return StrategyKind(value.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(kind.value for kind in StrategyKind)
        raise ConfigError(f"Unknown strategy '{value}'. Allowed: {allowed}.") from exc


def build_requests(
    *,
    source: str,
    target_keys: Sequence[str],
    strategy: str | None = None,
    start: date | None = None,
    end: date | None = None,
    test_mode: bool = False,
    strict: bool = False,
    allow_partial: bool = False,
) -> list[ScrapeRequest]:
    """
    Expand one invocation into per-target requests, deduplicating keys in order.
    """

    if (start is None) != (end is None):
        raise ConfigError("dateRange requires both start and end.")
    date_range = DateRange(start=start, end=end) if start is not None and end is not None else None
    hint = parse_strategy(strategy)
    options = RequestOptions(test_mode=test_mode, strict=strict, allow_partial=allow_partial)

    requests: list[ScrapeRequest] = []
    seen: set[str] = set()
    for raw_key in target_keys:
        key = (raw_key or "").strip()
        if not key:
            raise ConfigError("targetKeys must not contain blank entries.")
        if key in seen:
            continue
        seen.add(key)
        requests.append(
            ScrapeRequest(
                source=source.strip(),
                target_key=key,
                date_range=date_range,
                strategy_hint=hint,
                options=options,
            )
        )
    if not requests:
        raise ConfigError("targetKeys must contain at least one entry.")
    return requests


class ScrapeService:
    """
    Wires settings, strategies, compliance and storage into one batch run.

    Test-mode batches never touch the network or the database: they use the
    fixture-backed mock strategy, a permissive robots document and a fresh
    in-memory store per run.
    """

    def __init__(
        self,
        settings: ScrapeSettings | None = None,
        *,
        sources: dict[str, SourceConfig] | None = None,
        storage: RecordStorage | None = None,
    ) -> None:
        self._settings = settings or get_scrape_settings()
        self._sources = sources
        self._storage = storage

    @property
    def sources(self) -> dict[str, SourceConfig]:
        if self._sources is None:
            self._sources = load_source_configs(config_path=self._settings.sources_config_path)
        return self._sources

    def scheduler_config(self, *, test_mode: bool) -> SchedulerConfig:
        config = SchedulerConfig.from_settings(self._settings)
        if test_mode:
            return SchedulerConfig(
                concurrency=config.concurrency,
                inter_request_delay_ms=0,
                max_retries_per_request=config.max_retries_per_request,
                backoff_initial_seconds=0.0,
                backoff_multiplier=config.backoff_multiplier,
                backoff_max_seconds=0.0,
                user_agent=config.user_agent,
                healing_enabled=config.healing_enabled,
                healing_min_confidence=config.healing_min_confidence,
            )
        return config

    async def run(
        self,
        *,
        source: str,
        target_keys: Sequence[str],
        strategy: str | None = None,
        start: date | None = None,
        end: date | None = None,
        test_mode: bool = False,
        strict: bool = False,
        allow_partial: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> BatchReport:
        requests = build_requests(
            source=source,
            target_keys=target_keys,
            strategy=strategy,
            start=start,
            end=end,
            test_mode=test_mode,
            strict=strict,
            allow_partial=allow_partial,
        )
        strategies = self._build_strategies(test_mode=test_mode)
        scheduler = BatchScheduler(
            sources=self.sources,
            strategies=strategies,
            robots_fetcher=self._build_robots_fetcher(test_mode=test_mode),
            failure_policy=ComplianceFailurePolicy(self._settings.robots_failure_policy),
            healer=SelectorHealer(
                self._build_generator(test_mode=test_mode),
                min_confidence=self._settings.healing_min_confidence,
            ),
        )
        try:
            return await scheduler.run(
                requests,
                self.scheduler_config(test_mode=test_mode),
                cancel_event=cancel_event,
                storage=self._build_storage(test_mode=test_mode),
            )
        finally:
            await strategies.aclose()

    def _build_strategies(self, *, test_mode: bool) -> StrategyRegistry:
        if test_mode:
            return StrategyRegistry({StrategyKind.MOCK: MockStrategy()}, required=(StrategyKind.MOCK,))
        settings = self._settings
        return StrategyRegistry(
            {
                StrategyKind.HTTP_FETCH: HTTPFetchStrategy(
                    user_agent=settings.user_agent,
                    timeout_seconds=settings.timeout_seconds,
                ),
                StrategyKind.HEADLESS_RENDER: HeadlessRenderStrategy(
                    user_agent=settings.user_agent,
                    timeout_seconds=settings.render_timeout_seconds,
                ),
                StrategyKind.RENDERING_API: RenderingAPIStrategy(
                    api_key=settings.firecrawl_api_key,
                    base_url=settings.firecrawl_base_url,
                    timeout_seconds=settings.render_timeout_seconds,
                ),
            }
        )

    def _build_robots_fetcher(self, *, test_mode: bool) -> RobotsFetcher:
        if test_mode:
            return StaticRobotsFetcher()
        return HTTPRobotsFetcher(timeout_seconds=self._settings.timeout_seconds)

    def _build_generator(self, *, test_mode: bool) -> SuggestionGenerator:
        if not test_mode and self._settings.healing_adapter == "openai":
            return OpenAISuggestionGenerator(model=self._settings.llm_model)
        return HeuristicSuggestionGenerator()

    def _build_storage(self, *, test_mode: bool) -> RecordStorage:
        if test_mode:
            return InMemoryRecordStorage()
        if self._storage is None:
            self._storage = SQLAlchemyRecordStorage(session_factory=SessionLocal)
        return self._storage


@lru_cache(maxsize=1)
def get_scrape_service() -> ScrapeService:
    """
    Build and cache scrape service.
    """

    return ScrapeService()
