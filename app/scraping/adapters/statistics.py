"""
Published statistics table adapter.
"""

from __future__ import annotations

from typing import Any

from app.domain.regulatory_records import StatisticRow
from app.scraping.adapters.base import RowIssues, SourceAdapter, clean_text, parse_decimal
from app.scraping.parsing.html_parsers import ExtractedContent
from app.scraping.types import AttemptMetadata


class StatisticsAdapter(SourceAdapter):
    source = "sfc-statistics"

    def _page_context(
        self,
        raw_content: ExtractedContent,
        attempt: AttemptMetadata,
        issues: RowIssues,
    ) -> dict[str, Any]:
        table_id = clean_text(raw_content.page.get("table_id")) or clean_text(attempt.target_key)
        if not table_id:
            issues.add("missing-field", "statistics table id is required", "table_id")

        report_period = clean_text(raw_content.page.get("report_period"))
        if not report_period:
            issues.add("missing-field", "report period is required", "report_period")

        columns = raw_content.page.get("columns") or []
        return {
            "table_id": table_id.lower(),
            "report_period": report_period,
            "columns": [clean_text(column) for column in columns],
        }

    def _build_row(
        self,
        raw: dict[str, Any],
        index: int,
        context: dict[str, Any],
        attempt: AttemptMetadata,
        issues: RowIssues,
    ) -> StatisticRow | None:
        row_label = issues.require_text(raw, "row_label")
        cells = raw.get("values") or []
        if isinstance(cells, str):
            cells = [cells]

        columns: list[str] = context["columns"]
        values: list[tuple[str, float]] = []
        for position, cell in enumerate(cells):
            parsed = parse_decimal(cell)
            if parsed is None:
                continue
            column = columns[position] if position < len(columns) and columns[position] else f"col_{position + 1}"
            values.append((column, parsed))

        if not values:
            issues.add("missing-field", f"row {index}: at least one numeric value is required", "values")
        if issues.issues:
            return None

        return StatisticRow(
            table_id=context["table_id"],
            report_period=context["report_period"],
            row_label=row_label,
            values=tuple(values),
        )
