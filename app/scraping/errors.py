"""
Exceptions raised inside the scrape orchestration engine.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.scraping.types import ErrorKind


class ScrapeError(Exception):
    """
    Base exception carrying the failure kind used for retry decisions.
    """

    def __init__(self, message: str, *, kind: ErrorKind, url: str | None = None) -> None:
        self.kind = kind
        self.url = url
        super().__init__(message)


class ConfigError(ScrapeError):
    """
    Structural problem with a batch (unknown source, unknown strategy, bad config).
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, kind=ErrorKind.UNEXPECTED)


class StrategyError(ScrapeError):
    """
    Retrieval failure reported by an extraction strategy.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind,
        url: str | None = None,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        self.status_code = status_code
        self.retry_after = retry_after
        super().__init__(message, kind=kind, url=url)


class SelectorMissError(ScrapeError):
    """
    A configured selector located nothing in the page snapshot.
    """

    def __init__(self, *, field_name: str, selector: str, detail: str | None = None) -> None:
        self.field_name = field_name
        self.selector = selector
        message = f"Selector for '{field_name}' matched nothing: {selector}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message, kind=ErrorKind.SELECTOR_MISS)


@dataclass(frozen=True)
class ValidationIssue:
    """
    One structured adapter validation problem.
    """

    code: str
    message: str
    field_name: str | None = None
    row_index: int | None = None


class RecordValidationError(ScrapeError):
    """
    Adapter rejected extracted content.
    """

    def __init__(self, *, source: str, issues: list[ValidationIssue]) -> None:
        self.source = source
        self.issues = issues
        summary = "; ".join(issue.message for issue in issues[:5])
        super().__init__(
            f"{source}: record validation failed with {len(issues)} issue(s): {summary}",
            kind=ErrorKind.VALIDATION_FAILED,
        )


class StorageError(ScrapeError):
    """
    Storage collaborator could not persist a normalized record.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, kind=ErrorKind.STORAGE_FAILED)
