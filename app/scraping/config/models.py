"""
Scraping configuration models.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from app.scraping.types import StrategyKind

DATA_TYPES = frozenset({"text", "number", "date", "link", "list"})


@dataclass(frozen=True)
class FieldRule:
    """
    How to locate one field in a page snapshot.
    """

    name: str
    selector: str
    intent: str
    data_type: str = "text"
    required: bool = True
    attribute: str | None = None


@dataclass(frozen=True)
class ExtractionRules:
    """
    Row container selector plus per-row and page-level field rules.
    """

    rows: FieldRule
    fields: tuple[FieldRule, ...] = ()
    page_fields: tuple[FieldRule, ...] = ()

    def all_rules(self) -> tuple[FieldRule, ...]:
        return (self.rows, *self.fields, *self.page_fields)

    def rule(self, name: str) -> FieldRule | None:
        for candidate in self.all_rules():
            if candidate.name == name:
                return candidate
        return None

    def with_selector(self, name: str, selector: str) -> "ExtractionRules":
        """
        Return a copy with one field's selector replaced.
        """

        if self.rows.name == name:
            return replace(self, rows=replace(self.rows, selector=selector))
        return replace(
            self,
            fields=tuple(
                replace(rule, selector=selector) if rule.name == name else rule
                for rule in self.fields
            ),
            page_fields=tuple(
                replace(rule, selector=selector) if rule.name == name else rule
                for rule in self.page_fields
            ),
        )


@dataclass(frozen=True)
class SourceConfig:
    """
    One regulatory source definition.
    """

    name: str
    url_template: str
    rules: ExtractionRules
    default_strategy: StrategyKind = StrategyKind.HTTP_FETCH
    date_format: str = "%Y/%m/%d"
    min_content_length: int = 200
    wait_for_selector: str | None = None
    advisories: tuple[str, ...] = ()
    adapter_class: str | None = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ScrapeSettings:
    """
    Runtime settings for scrape orchestration.
    """

    sources_config_path: str
    user_agent: str
    concurrency: int
    inter_request_delay_ms: int
    max_retries: int
    backoff_initial_seconds: float
    backoff_multiplier: float
    timeout_seconds: float
    render_timeout_seconds: float
    robots_failure_policy: str
    healing_enabled: bool
    healing_min_confidence: int
    healing_adapter: str
    firecrawl_api_key: str | None
    firecrawl_base_url: str
    llm_model: str


@dataclass(frozen=True)
class SchedulerConfig:
    """
    Per-run knobs for the batch scheduler.
    """

    concurrency: int = 3
    inter_request_delay_ms: int = 2000
    max_retries_per_request: int = 2
    backoff_initial_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    backoff_max_seconds: float = 30.0
    user_agent: str = "RegulatoryScrapeBot/1.0"
    healing_enabled: bool = True
    healing_min_confidence: int = 80

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1.")
        if self.max_retries_per_request < 0:
            raise ValueError("max_retries_per_request must be >= 0.")
        if self.inter_request_delay_ms < 0:
            raise ValueError("inter_request_delay_ms must be >= 0.")

    @classmethod
    def from_settings(cls, settings: ScrapeSettings) -> "SchedulerConfig":
        return cls(
            concurrency=settings.concurrency,
            inter_request_delay_ms=settings.inter_request_delay_ms,
            max_retries_per_request=settings.max_retries,
            backoff_initial_seconds=settings.backoff_initial_seconds,
            backoff_multiplier=settings.backoff_multiplier,
            user_agent=settings.user_agent,
            healing_enabled=settings.healing_enabled,
            healing_min_confidence=settings.healing_min_confidence,
        )
