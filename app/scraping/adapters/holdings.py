"""
Depository (CCASS) participant shareholding adapter.
"""

from __future__ import annotations

from typing import Any

from app.domain.regulatory_records import HoldingRow
from app.scraping.adapters.base import RowIssues, SourceAdapter, clean_text, normalize_stock_code
from app.scraping.parsing.html_parsers import ExtractedContent, HTMLParsingLayer
from app.scraping.types import AttemptMetadata


class HoldingsAdapter(SourceAdapter):
    source = "ccass"

    def _page_context(
        self,
        raw_content: ExtractedContent,
        attempt: AttemptMetadata,
        issues: RowIssues,
    ) -> dict[str, Any]:
        stock_code = normalize_stock_code(attempt.target_key)
        if stock_code is None:
            issues.add(
                "invalid-stock-code",
                f"stock code must be up to 5 digits, got '{attempt.target_key}'",
                "stock_code",
            )

        data_date = HTMLParsingLayer.parse_date(raw_content.page.get("data_date"), self.config.date_format)
        if data_date is None and attempt.date_range is not None:
            data_date = attempt.date_range.start
        if data_date is None:
            issues.add("missing-field", "shareholding date not found on page or in request", "data_date")

        return {"stock_code": stock_code, "data_date": data_date}

    def _build_row(
        self,
        raw: dict[str, Any],
        index: int,
        context: dict[str, Any],
        attempt: AttemptMetadata,
        issues: RowIssues,
    ) -> HoldingRow | None:
        participant_id = issues.require_text(raw, "participant_id")
        participant_name = issues.require_text(raw, "participant_name")
        shareholding = issues.require_number(raw, "shareholding")
        percentage = issues.optional_percentage(raw, "percentage")
        if shareholding is not None and shareholding < 0:
            issues.add("out-of-range", f"row {index}: 'shareholding' must not be negative", "shareholding")
        if issues.issues:
            return None

        return HoldingRow(
            stock_code=context["stock_code"],
            participant_id=participant_id.upper(),
            participant_name=participant_name,
            shareholding=shareholding,
            data_date=context["data_date"],
            address=clean_text(raw.get("address")) or None,
            percentage=percentage,
        )
