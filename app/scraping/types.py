"""
Shared scrape orchestration runtime data models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from app.domain.regulatory_records import RegulatoryRow


class StrategyKind(str, Enum):
    """
    Closed set of extraction strategy variants.
    """

    HTTP_FETCH = "http-fetch"
    HEADLESS_RENDER = "headless-render"
    RENDERING_API = "rendering-api"
    MOCK = "mock"


# Cheapest first. Escalation only ever moves rightwards.
ESCALATION_ORDER: tuple[StrategyKind, ...] = (
    StrategyKind.HTTP_FETCH,
    StrategyKind.HEADLESS_RENDER,
    StrategyKind.RENDERING_API,
)


class ErrorKind(str, Enum):
    """
    Failure taxonomy shared by strategies, the pipeline and the batch report.
    """

    COMPLIANCE_DISALLOWED = "compliance-disallowed"
    NETWORK_TIMEOUT = "network-timeout"
    HTTP_STATUS = "http-status"
    RATE_LIMITED = "rate-limited"
    RENDER_TIMEOUT = "render-timeout"
    CONTENT_SHAPE = "content-shape"
    STRATEGY_UNAVAILABLE = "strategy-unavailable"
    SELECTOR_MISS = "selector-miss"
    SELECTOR_EXHAUSTED = "selector-exhausted"
    VALIDATION_FAILED = "validation-failed"
    STORAGE_FAILED = "storage-failed"
    CANCELLED = "cancelled"
    UNEXPECTED = "unexpected-error"


TRANSIENT_ERROR_KINDS = frozenset(
    {
        ErrorKind.NETWORK_TIMEOUT,
        ErrorKind.RATE_LIMITED,
        ErrorKind.RENDER_TIMEOUT,
    }
)


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class DateRange:
    """
    Inclusive date window attached to a scrape request.
    """

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Invalid date range: end {self.end} precedes start {self.start}.")

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


@dataclass(frozen=True)
class RequestOptions:
    test_mode: bool = False
    strict: bool = False
    allow_partial: bool = False


@dataclass(frozen=True)
class ScrapeRequest:
    """
    One `(source, target_key)` unit of work. Never mutated after submission.
    """

    source: str
    target_key: str
    date_range: DateRange | None = None
    strategy_hint: StrategyKind | None = None
    options: RequestOptions = field(default_factory=RequestOptions)


@dataclass(frozen=True)
class FetchTarget:
    """
    Resolved location of one request's page.
    """

    source: str
    target_key: str
    url: str
    domain: str
    path: str


@dataclass(frozen=True)
class ComplianceDecision:
    """
    Crawl permission and pacing for one target path.
    """

    allowed: bool
    crawl_delay_seconds: float
    disallowed_paths: frozenset[str] = frozenset()
    reasons: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class ExtractionAttempt:
    """
    Outcome of one retrieval or healing-validation try.

    Exactly one of `raw_content` and `error` is set.
    """

    strategy_used: StrategyKind
    url: str
    raw_content: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    http_status: int | None = None
    duration_ms: int = 0
    selector_used: str | None = None
    attempt_number: int = 0
    retry_after_seconds: float | None = None

    @property
    def succeeded(self) -> bool:
        return self.error_kind is None and self.raw_content is not None


@dataclass(frozen=True)
class AttemptMetadata:
    """
    Context handed to source adapters alongside extracted content.
    """

    source: str
    target_key: str
    url: str
    strategy_used: StrategyKind
    attempt_count: int
    date_range: DateRange | None = None
    healed_selectors: tuple[str, ...] = ()


@dataclass(frozen=True)
class Provenance:
    source: str
    target_key: str
    attempt_count: int
    strategy_used: StrategyKind
    healed_selectors: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "target_key": self.target_key,
            "attempt_count": self.attempt_count,
            "strategy_used": self.strategy_used.value,
            "healed_selectors": list(self.healed_selectors),
        }


@dataclass(frozen=True)
class NormalizedRecord:
    """
    Typed rows produced by one source adapter for one request.
    """

    source: str
    target_key: str
    rows: tuple[RegulatoryRow, ...]
    provenance: Provenance
    dropped_rows: int = 0


@dataclass(frozen=True)
class HealedSelector:
    """
    Selector replacement accepted during a run, kept for operator promotion.
    """

    source: str
    field_name: str
    broken_selector: str
    new_selector: str
    confidence: int
    target_key: str


@dataclass(frozen=True)
class RequestOutcome:
    """
    Terminal state of one scrape request.
    """

    request: ScrapeRequest
    status: OutcomeStatus
    reason: str | None = None
    attempts: tuple[ExtractionAttempt, ...] = ()
    record: NormalizedRecord | None = None
    compliance: ComplianceDecision | None = None

    @property
    def target_key(self) -> str:
        return self.request.target_key


@dataclass
class BatchReport:
    """
    Aggregate of all request outcomes for one batch run, in completion order.
    """

    success: bool = True
    records_inserted: int = 0
    records_updated: int = 0
    records_failed: int = 0
    outcomes: list[RequestOutcome] = field(default_factory=list)
    healed_selectors: list[HealedSelector] = field(default_factory=list)

    @property
    def records(self) -> list[NormalizedRecord]:
        return [
            outcome.record
            for outcome in self.outcomes
            if outcome.record is not None
            and outcome.status in (OutcomeStatus.SUCCESS, OutcomeStatus.PARTIAL)
        ]

    def outcome_for(self, target_key: str) -> RequestOutcome | None:
        for outcome in self.outcomes:
            if outcome.target_key == target_key:
                return outcome
        return None

    def to_response(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "recordsInserted": self.records_inserted,
            "recordsUpdated": self.records_updated,
            "recordsFailed": self.records_failed,
            "perRequestDetail": [
                {
                    "targetKey": outcome.target_key,
                    "outcome": outcome.status.value,
                    "reason": outcome.reason,
                }
                for outcome in self.outcomes
            ],
        }
