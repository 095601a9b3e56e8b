"""
Base class for source adapters: extracted field values in, typed rows out.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, ClassVar

from app.domain.regulatory_records import RegulatoryRow
from app.scraping.config.models import SourceConfig
from app.scraping.errors import RecordValidationError, ValidationIssue
from app.scraping.parsing.html_parsers import ExtractedContent, HTMLParsingLayer
from app.scraping.types import AttemptMetadata, NormalizedRecord, Provenance

logger = logging.getLogger(__name__)

_NUMBER_REGEX = re.compile(r"-?\d[\d,]*(?:\.\d+)?|-?\.\d+")


def clean_text(value: Any) -> str:
    if value is None:
        return ""
    return HTMLParsingLayer.clean_text(str(value))


def parse_decimal(value: Any) -> float | None:
    """
    Parse a locale-formatted number such as `1,234,567.89` or `(1,234)`.
    """

    text = clean_text(value)
    if not text:
        return None
    negative = text.startswith("(") and text.endswith(")")
    match = _NUMBER_REGEX.search(text)
    if match is None:
        return None
    try:
        parsed = float(match.group(0).replace(",", ""))
    except ValueError:
        return None
    return -parsed if negative else parsed


def parse_number(value: Any) -> int | None:
    parsed = parse_decimal(value)
    if parsed is None:
        return None
    return int(round(parsed))


def parse_percentage(value: Any) -> float | None:
    return parse_decimal(clean_text(value).replace("%", ""))


def normalize_stock_code(value: Any) -> str | None:
    digits = re.sub(r"\D", "", clean_text(value))
    if not digits or len(digits) > 5:
        return None
    return digits.zfill(5)


class RowIssues:
    """
    Collects validation issues for one row.
    """

    def __init__(self, row_index: int | None) -> None:
        self.row_index = row_index
        self.issues: list[ValidationIssue] = []

    def add(self, code: str, message: str, field_name: str | None = None) -> None:
        self.issues.append(
            ValidationIssue(code=code, message=message, field_name=field_name, row_index=self.row_index)
        )

    def require_text(self, raw: dict[str, Any], field_name: str) -> str:
        value = clean_text(raw.get(field_name))
        if not value:
            self.add("missing-field", f"row {self.row_index}: '{field_name}' is required", field_name)
        return value

    def require_number(self, raw: dict[str, Any], field_name: str) -> int | None:
        text = clean_text(raw.get(field_name))
        if not text:
            self.add("missing-field", f"row {self.row_index}: '{field_name}' is required", field_name)
            return None
        parsed = parse_number(text)
        if parsed is None:
            self.add("invalid-number", f"row {self.row_index}: '{field_name}' is not numeric: {text}", field_name)
        return parsed

    def require_date(self, raw: dict[str, Any], field_name: str, date_format: str) -> date | None:
        text = clean_text(raw.get(field_name))
        if not text:
            self.add("missing-field", f"row {self.row_index}: '{field_name}' is required", field_name)
            return None
        parsed = HTMLParsingLayer.parse_date(text, date_format)
        if parsed is None:
            self.add("invalid-date", f"row {self.row_index}: '{field_name}' is not a date: {text}", field_name)
        return parsed

    def optional_percentage(self, raw: dict[str, Any], field_name: str) -> float | None:
        text = clean_text(raw.get(field_name))
        if not text:
            return None
        parsed = parse_percentage(text)
        if parsed is None:
            self.add("invalid-number", f"row {self.row_index}: '{field_name}' is not numeric: {text}", field_name)
            return None
        if not 0 <= parsed <= 100:
            self.add(
                "out-of-range",
                f"row {self.row_index}: '{field_name}' must be between 0 and 100, got {parsed}",
                field_name,
            )
            return None
        return parsed


class SourceAdapter(ABC):
    """
    Normalizes extracted content for one source into typed rows.

    Page-level problems always reject the record. Row-level problems reject
    it unless `allow_partial`, in which case invalid rows are dropped.
    """

    source: ClassVar[str]

    def __init__(self, config: SourceConfig) -> None:
        self.config = config

    def normalize(
        self,
        raw_content: ExtractedContent,
        attempt: AttemptMetadata,
        *,
        allow_partial: bool = False,
    ) -> NormalizedRecord:
        page_issues = RowIssues(row_index=None)
        context = self._page_context(raw_content, attempt, page_issues)
        if page_issues.issues:
            raise RecordValidationError(source=self.source, issues=page_issues.issues)

        rows: list[RegulatoryRow] = []
        issues: list[ValidationIssue] = []
        invalid_rows = 0
        seen_keys: set[tuple[str, ...]] = set()
        for index, raw in enumerate(raw_content.rows):
            row_issues = RowIssues(row_index=index)
            row = self._build_row(raw, index, context, attempt, row_issues)
            if row_issues.issues:
                invalid_rows += 1
                issues.extend(row_issues.issues)
                continue
            if row is None:
                continue
            key = row.natural_key()
            if key in seen_keys:
                continue
            seen_keys.add(key)
            rows.append(row)

        if issues and (not allow_partial or not rows):
            raise RecordValidationError(source=self.source, issues=issues)
        if invalid_rows:
            logger.warning(
                "%s: dropped %s invalid row(s) for target %s",
                self.source,
                invalid_rows,
                attempt.target_key,
            )

        return NormalizedRecord(
            source=self.source,
            target_key=attempt.target_key,
            rows=tuple(rows),
            provenance=Provenance(
                source=self.source,
                target_key=attempt.target_key,
                attempt_count=attempt.attempt_count,
                strategy_used=attempt.strategy_used,
                healed_selectors=attempt.healed_selectors,
            ),
            dropped_rows=invalid_rows,
        )

    def _page_context(
        self,
        raw_content: ExtractedContent,
        attempt: AttemptMetadata,
        issues: RowIssues,
    ) -> dict[str, Any]:
        return {}

    @abstractmethod
    def _build_row(
        self,
        raw: dict[str, Any],
        index: int,
        context: dict[str, Any],
        attempt: AttemptMetadata,
        issues: RowIssues,
    ) -> RegulatoryRow | None:
        """
        Build one typed row, record problems on `issues`, or return None to skip it.
        """
