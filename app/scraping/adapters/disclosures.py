"""
Disclosure-of-interest notice adapter.
"""

from __future__ import annotations

from typing import Any

from app.domain.regulatory_records import DisclosureRow
from app.scraping.adapters.base import RowIssues, SourceAdapter, clean_text, normalize_stock_code
from app.scraping.parsing.html_parsers import ExtractedContent
from app.scraping.types import AttemptMetadata

DISCLOSURE_DATE_FORMAT = "%d/%m/%Y"


class DisclosuresAdapter(SourceAdapter):
    source = "hkex-disclosure"

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
        return {
            "stock_code": stock_code,
            "company_name": clean_text(raw_content.page.get("company_name")) or None,
        }

    def _build_row(
        self,
        raw: dict[str, Any],
        index: int,
        context: dict[str, Any],
        attempt: AttemptMetadata,
        issues: RowIssues,
    ) -> DisclosureRow | None:
        di_number = issues.require_text(raw, "di_number")
        disclosure_date = issues.require_date(raw, "disclosure_date", DISCLOSURE_DATE_FORMAT)
        shareholder = issues.require_text(raw, "substantial_shareholder")
        shares = issues.require_number(raw, "number_of_shares")
        percentage = issues.optional_percentage(raw, "percentage")
        if issues.issues or disclosure_date is None:
            return None
        if attempt.date_range is not None and not attempt.date_range.contains(disclosure_date):
            return None

        return DisclosureRow(
            di_number=di_number,
            stock_code=context["stock_code"],
            substantial_shareholder=shareholder,
            number_of_shares=shares,
            disclosure_date=disclosure_date,
            company_name=context["company_name"],
            position_type=clean_text(raw.get("position_type")).lower() or None,
            percentage=percentage,
            reason=clean_text(raw.get("reason")) or None,
        )
