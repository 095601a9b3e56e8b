"""
Single-request pipeline: compliance, retrieval, extraction, healing, normalization.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable
from urllib.parse import quote, urlparse

from app.scraping.compliance import ROBOTS_UNAVAILABLE, ComplianceGate
from app.scraping.config.models import ExtractionRules, SchedulerConfig, SourceConfig
from app.scraping.context import RunContext
from app.scraping.errors import ConfigError, RecordValidationError, SelectorMissError
from app.scraping.healing import SelectorHealer, SelectorHealingRequest
from app.scraping.logging_utils import elapsed_ms, log_event
from app.scraping.parsing.html_parsers import ExtractedContent, HTMLParsingLayer
from app.scraping.rate_limiter import DomainRateLimiter
from app.scraping.registry import AdapterRegistry
from app.scraping.strategies.registry import StrategyRegistry
from app.scraping.types import (
    TRANSIENT_ERROR_KINDS,
    AttemptMetadata,
    ComplianceDecision,
    ErrorKind,
    ExtractionAttempt,
    FetchTarget,
    HealedSelector,
    OutcomeStatus,
    RequestOutcome,
    ScrapeRequest,
    StrategyKind,
)

logger = logging.getLogger(__name__)


def resolve_target(request: ScrapeRequest, config: SourceConfig) -> FetchTarget:
    """
    Fill the source URL template for one request.
    """

    start = end = ""
    if request.date_range is not None:
        start = request.date_range.start.strftime(config.date_format)
        end = request.date_range.end.strftime(config.date_format)
    try:
        url = config.url_template.format_map(
            {
                "target_key": quote(request.target_key, safe=""),
                "start": quote(start, safe=""),
                "end": quote(end, safe=""),
            }
        )
    except (KeyError, IndexError, ValueError) as exc:
        raise ConfigError(f"{config.name}: invalid url_template '{config.url_template}': {exc}") from exc

    parsed = urlparse(url)
    if not parsed.netloc:
        raise ConfigError(f"{config.name}: url_template must produce an absolute URL, got '{url}'.")
    path = parsed.path or "/"
    if parsed.query:
        path = f"{path}?{parsed.query}"
    return FetchTarget(
        source=config.name,
        target_key=request.target_key,
        url=url,
        domain=parsed.netloc.lower(),
        path=path,
    )


def starting_strategy(request: ScrapeRequest, source_config: SourceConfig) -> StrategyKind:
    if request.options.test_mode:
        return StrategyKind.MOCK
    return request.strategy_hint or source_config.default_strategy or StrategyKind.HTTP_FETCH


def backoff_delay(config: SchedulerConfig, retry_index: int, retry_after: float | None = None) -> float:
    delay = config.backoff_initial_seconds * (config.backoff_multiplier ** retry_index)
    delay = min(delay, config.backoff_max_seconds)
    if retry_after is not None:
        delay = max(delay, min(retry_after, config.backoff_max_seconds))
    return delay


class RequestPipeline:
    """
    Drives one `ScrapeRequest` to a terminal `RequestOutcome`.

    Attempts per request are bounded by `max_retries_per_request + 1` fetches
    (escalations included) plus at most one healing validation.
    """

    def __init__(
        self,
        *,
        sources: dict[str, SourceConfig],
        strategies: StrategyRegistry,
        adapters: AdapterRegistry,
        gate: ComplianceGate,
        rate_limiter: DomainRateLimiter,
        config: SchedulerConfig,
        context: RunContext,
        healer: SelectorHealer | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._sources = sources
        self._strategies = strategies
        self._adapters = adapters
        self._gate = gate
        self._rate_limiter = rate_limiter
        self._config = config
        self._context = context
        self._healer = healer
        self._sleep = sleep

    async def process(self, request: ScrapeRequest) -> RequestOutcome:
        source_config = self._sources.get(request.source)
        if source_config is None:
            raise ConfigError(f"Unknown source: {request.source}")
        target = resolve_target(request, source_config)

        decision = await self._gate.evaluate(
            target.domain,
            target.path,
            self._config.user_agent,
            scheme=urlparse(target.url).scheme or "https",
            advisories=source_config.advisories,
        )
        if not decision.allowed:
            log_event(
                logger,
                logging.INFO,
                "request_blocked_by_compliance",
                source=request.source,
                target_key=request.target_key,
                url=target.url,
                reasons=list(decision.reasons),
                robots_unavailable=ROBOTS_UNAVAILABLE in decision.reasons,
            )
            return RequestOutcome(
                request=request,
                status=OutcomeStatus.FAILED,
                reason=ErrorKind.COMPLIANCE_DISALLOWED.value,
                compliance=decision,
            )

        attempts: list[ExtractionAttempt] = []
        fetched, cancelled = await self._retrieve(request, source_config, target, decision, attempts)
        if fetched is None:
            return self._terminal(request, decision, attempts, cancelled=cancelled)

        rules = self._context.rules_for(source_config)
        healed: list[str] = []
        try:
            content = HTMLParsingLayer.extract(html=fetched.raw_content or "", rules=rules, page_url=target.url)
        except SelectorMissError as miss:
            healed_content = await self._heal(request, source_config, target, rules, fetched, miss, attempts)
            if healed_content is None:
                reason = ErrorKind.SELECTOR_EXHAUSTED if self._healing_enabled() else ErrorKind.SELECTOR_MISS
                return RequestOutcome(
                    request=request,
                    status=OutcomeStatus.FAILED,
                    reason=reason.value,
                    attempts=tuple(attempts),
                    compliance=decision,
                )
            content, new_selector = healed_content
            healed.append(new_selector)

        adapter = self._adapters.create_adapter(source_config)
        metadata = AttemptMetadata(
            source=request.source,
            target_key=request.target_key,
            url=target.url,
            strategy_used=fetched.strategy_used,
            attempt_count=len(attempts),
            date_range=request.date_range,
            healed_selectors=tuple(healed),
        )
        try:
            record = adapter.normalize(content, metadata, allow_partial=request.options.allow_partial)
        except RecordValidationError as exc:
            log_event(
                logger,
                logging.WARNING,
                "record_validation_failed",
                source=request.source,
                target_key=request.target_key,
                issues=[issue.message for issue in exc.issues[:10]],
                issue_count=len(exc.issues),
            )
            return RequestOutcome(
                request=request,
                status=OutcomeStatus.FAILED,
                reason=ErrorKind.VALIDATION_FAILED.value,
                attempts=tuple(attempts),
                compliance=decision,
            )

        status = OutcomeStatus.PARTIAL if record.dropped_rows else OutcomeStatus.SUCCESS
        reason = f"dropped {record.dropped_rows} invalid row(s)" if record.dropped_rows else None
        log_event(
            logger,
            logging.INFO,
            "request_normalized",
            source=request.source,
            target_key=request.target_key,
            status=status.value,
            rows=len(record.rows),
            dropped_rows=record.dropped_rows,
            attempts=len(attempts),
            strategy=fetched.strategy_used.value,
        )
        return RequestOutcome(
            request=request,
            status=status,
            reason=reason,
            attempts=tuple(attempts),
            record=record,
            compliance=decision,
        )

    async def _retrieve(
        self,
        request: ScrapeRequest,
        source_config: SourceConfig,
        target: FetchTarget,
        decision: ComplianceDecision,
        attempts: list[ExtractionAttempt],
    ) -> tuple[ExtractionAttempt | None, bool]:
        chain = self._strategies.escalation_chain(
            starting_strategy(request, source_config),
            strict=request.options.strict,
        )
        budget = self._config.max_retries_per_request + 1
        chain_index = 0
        retries = 0

        while len(attempts) < budget:
            if self._context.cancelled:
                return None, True

            kind = chain[chain_index]
            await self._rate_limiter.wait(target.domain, crawl_delay_seconds=decision.crawl_delay_seconds)
            attempt = await self._strategies.get(kind).fetch(
                target,
                source_config,
                attempt_number=len(attempts) + 1,
            )
            attempts.append(attempt)
            if attempt.succeeded:
                return attempt, False

            if attempt.error_kind is ErrorKind.CONTENT_SHAPE and chain_index + 1 < len(chain):
                chain_index += 1
                log_event(
                    logger,
                    logging.INFO,
                    "strategy_escalated",
                    source=request.source,
                    target_key=request.target_key,
                    from_strategy=kind.value,
                    to_strategy=chain[chain_index].value,
                )
                continue

            if attempt.error_kind in TRANSIENT_ERROR_KINDS and len(attempts) < budget:
                if self._context.cancelled:
                    return None, True
                delay = backoff_delay(self._config, retries, attempt.retry_after_seconds)
                retries += 1
                log_event(
                    logger,
                    logging.INFO,
                    "request_retry_scheduled",
                    source=request.source,
                    target_key=request.target_key,
                    strategy=kind.value,
                    error_kind=attempt.error_kind.value,
                    delay_seconds=round(delay, 3),
                    next_attempt=len(attempts) + 1,
                )
                await self._sleep(delay)
                continue

            return None, False
        return None, False

    def _terminal(
        self,
        request: ScrapeRequest,
        decision: ComplianceDecision,
        attempts: list[ExtractionAttempt],
        *,
        cancelled: bool,
    ) -> RequestOutcome:
        last = attempts[-1] if attempts else None
        if cancelled:
            return RequestOutcome(
                request=request,
                status=OutcomeStatus.CANCELLED,
                reason=ErrorKind.CANCELLED.value,
                attempts=tuple(attempts),
                compliance=decision,
            )
        kind = last.error_kind if last is not None and last.error_kind is not None else ErrorKind.UNEXPECTED
        return RequestOutcome(
            request=request,
            status=OutcomeStatus.FAILED,
            reason=kind.value,
            attempts=tuple(attempts),
            compliance=decision,
        )

    def _healing_enabled(self) -> bool:
        return self._healer is not None and self._config.healing_enabled

    async def _heal(
        self,
        request: ScrapeRequest,
        source_config: SourceConfig,
        target: FetchTarget,
        rules: ExtractionRules,
        fetched: ExtractionAttempt,
        miss: SelectorMissError,
        attempts: list[ExtractionAttempt],
    ) -> tuple[ExtractedContent, str] | None:
        log_event(
            logger,
            logging.WARNING,
            "selector_miss",
            source=request.source,
            target_key=request.target_key,
            field=miss.field_name,
            selector=miss.selector,
            error=str(miss),
        )
        rule = rules.rule(miss.field_name)
        if not self._healing_enabled() or rule is None or self._healer is None:
            return None

        snapshot = fetched.raw_content or ""
        healing_request = SelectorHealingRequest(
            html_snapshot=snapshot,
            intent=rule.intent,
            broken_selector=rule.selector,
            expected_data_type=rule.data_type,
            site=target.domain,
            field_name=rule.name,
            context_description=f"'{rule.name}' field of the {source_config.name} page",
        )
        result = await self._healer.heal(healing_request)
        if not result.success or result.best is None:
            log_event(
                logger,
                logging.WARNING,
                "selector_healing_failed",
                source=request.source,
                target_key=request.target_key,
                field=rule.name,
                error=result.error,
            )
            return None

        candidate = result.best.candidate_selector
        started_at = time.perf_counter()
        try:
            content = HTMLParsingLayer.extract(
                html=snapshot,
                rules=rules.with_selector(rule.name, candidate),
                page_url=target.url,
            )
        except SelectorMissError as exc:
            attempts.append(
                ExtractionAttempt(
                    strategy_used=fetched.strategy_used,
                    url=target.url,
                    error=str(exc),
                    error_kind=ErrorKind.SELECTOR_MISS,
                    duration_ms=elapsed_ms(started_at),
                    selector_used=candidate,
                    attempt_number=len(attempts) + 1,
                )
            )
            log_event(
                logger,
                logging.WARNING,
                "selector_healing_rejected",
                source=request.source,
                target_key=request.target_key,
                field=rule.name,
                candidate=candidate,
                error=str(exc),
            )
            return None

        attempts.append(
            ExtractionAttempt(
                strategy_used=fetched.strategy_used,
                url=target.url,
                raw_content=snapshot,
                duration_ms=elapsed_ms(started_at),
                selector_used=candidate,
                attempt_number=len(attempts) + 1,
            )
        )
        self._healer.record_success(healing_request, candidate)
        self._context.accept_healed(
            HealedSelector(
                source=source_config.name,
                field_name=rule.name,
                broken_selector=rule.selector,
                new_selector=candidate,
                confidence=result.best.confidence_score,
                target_key=request.target_key,
            )
        )
        log_event(
            logger,
            logging.WARNING,
            "selector_healed",
            source=source_config.name,
            field=rule.name,
            broken_selector=rule.selector,
            new_selector=candidate,
            confidence=result.best.confidence_score,
            target_key=request.target_key,
        )
        return content, candidate
