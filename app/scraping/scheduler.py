"""
Batch scheduler: bounded-concurrency dispatch of scrape requests.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from typing import Awaitable, Callable

from app.scraping.aggregator import ResultAggregator
from app.scraping.compliance import ComplianceFailurePolicy, ComplianceGate, RobotsFetcher
from app.scraping.config.models import SchedulerConfig, SourceConfig
from app.scraping.context import RunContext
from app.scraping.errors import ConfigError
from app.scraping.healing import SelectorHealer
from app.scraping.logging_utils import log_event
from app.scraping.pipeline import RequestPipeline, resolve_target, starting_strategy
from app.scraping.rate_limiter import DomainRateLimiter
from app.scraping.registry import AdapterRegistry
from app.scraping.storage.base import RecordStorage
from app.scraping.strategies.registry import StrategyRegistry
from app.scraping.types import (
    BatchReport,
    ErrorKind,
    OutcomeStatus,
    RequestOutcome,
    ScrapeRequest,
)

logger = logging.getLogger(__name__)


class BatchScheduler:
    """
    Runs a batch of scrape requests politely and reports every outcome.

    Only structural problems (unknown source, unsupported strategy, broken
    source config) raise `ConfigError`; every per-request failure ends up in
    the returned `BatchReport`.
    """

    def __init__(
        self,
        *,
        sources: dict[str, SourceConfig],
        strategies: StrategyRegistry,
        robots_fetcher: RobotsFetcher,
        failure_policy: ComplianceFailurePolicy = ComplianceFailurePolicy.OPEN,
        adapters: AdapterRegistry | None = None,
        healer: SelectorHealer | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sources = sources
        self._strategies = strategies
        self._robots_fetcher = robots_fetcher
        self._failure_policy = failure_policy
        self._adapters = adapters or AdapterRegistry()
        self._healer = healer
        self._sleep = sleep
        self._clock = clock
        self.last_context: RunContext | None = None

    async def run(
        self,
        requests: Sequence[ScrapeRequest],
        config: SchedulerConfig,
        *,
        cancel_event: asyncio.Event | None = None,
        storage: RecordStorage | None = None,
    ) -> BatchReport:
        self._validate(requests)

        context = RunContext(cancel_event=cancel_event or asyncio.Event())
        self.last_context = context
        gate = ComplianceGate(
            fetcher=self._robots_fetcher,
            failure_policy=self._failure_policy,
            cache=context.compliance_cache,
        )
        rate_limiter = DomainRateLimiter(
            default_interval_seconds=config.inter_request_delay_ms / 1000.0,
            clock=self._clock,
            sleep=self._sleep,
        )
        pipeline = RequestPipeline(
            sources=self._sources,
            strategies=self._strategies,
            adapters=self._adapters,
            gate=gate,
            rate_limiter=rate_limiter,
            config=config,
            context=context,
            healer=self._healer,
            sleep=self._sleep,
        )
        aggregator = ResultAggregator()
        semaphore = asyncio.Semaphore(config.concurrency)

        log_event(
            logger,
            logging.INFO,
            "batch_started",
            requests=len(requests),
            concurrency=config.concurrency,
            inter_request_delay_ms=config.inter_request_delay_ms,
            max_retries=config.max_retries_per_request,
        )

        async def dispatch(request: ScrapeRequest) -> None:
            async with semaphore:
                if context.cancelled:
                    aggregator.add(
                        RequestOutcome(
                            request=request,
                            status=OutcomeStatus.CANCELLED,
                            reason=ErrorKind.CANCELLED.value,
                        )
                    )
                    return
                context.enter()
                try:
                    outcome = await pipeline.process(request)
                except Exception as exc:
                    log_event(
                        logger,
                        logging.ERROR,
                        "request_failed_unexpectedly",
                        source=request.source,
                        target_key=request.target_key,
                        error=f"{type(exc).__name__}: {exc}",
                    )
                    outcome = RequestOutcome(
                        request=request,
                        status=OutcomeStatus.FAILED,
                        reason=ErrorKind.UNEXPECTED.value,
                    )
                finally:
                    context.leave()
            aggregator.add(outcome)

        await asyncio.gather(*(dispatch(request) for request in requests))
        report = await aggregator.finalize(storage, context.healed_selectors)

        log_event(
            logger,
            logging.INFO,
            "batch_completed",
            requests=len(requests),
            records_inserted=report.records_inserted,
            records_updated=report.records_updated,
            records_failed=report.records_failed,
            healed_selectors=len(report.healed_selectors),
            cancelled=context.cancelled,
            peak_in_flight=context.peak_in_flight,
        )
        return report

    def _validate(self, requests: Sequence[ScrapeRequest]) -> None:
        if not requests:
            raise ConfigError("At least one scrape request is required.")

        known_strategies = set(self._strategies.kinds())
        for request in requests:
            config = self._sources.get(request.source)
            if config is None:
                allowed = ", ".join(sorted(self._sources))
                raise ConfigError(f"Unknown source '{request.source}'. Known sources: {allowed}.")
            if not request.target_key.strip():
                raise ConfigError(f"{request.source}: target key must not be blank.")
            self._adapters.create_adapter(config)
            start = starting_strategy(request, config)
            if start not in known_strategies:
                raise ConfigError(f"Unsupported strategy '{start.value}' for source '{request.source}'.")
            resolve_target(request, config)
