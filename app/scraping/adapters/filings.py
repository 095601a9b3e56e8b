"""
Regulator news, circular and enforcement filing adapter.
"""

from __future__ import annotations

import hashlib
import re
from typing import Any

from app.domain.regulatory_records import FilingRow
from app.scraping.adapters.base import RowIssues, SourceAdapter, clean_text
from app.scraping.types import AttemptMetadata

FILING_TYPES = (
    "corporate",
    "enforcement",
    "policy",
    "shareholding",
    "decisions",
    "events",
    "circular",
    "consultation",
    "news",
    "other",
)

_URL_CATEGORIES = ("corporate", "enforcement", "policy", "shareholding", "decisions", "events")

# Checked in order; earlier entries win where keywords overlap.
_TITLE_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("consultation", ("consultation", "consults on", "comment", "feedback")),
    ("circular", ("circular",)),
    (
        "enforcement",
        (
            "reprimand",
            "fine",
            "sanction",
            "prosecution",
            "custodial sentence",
            "disciplinary action",
            "suspend",
            "revoke",
            "banned",
        ),
    ),
    ("shareholding", ("shareholding concentration", "substantial shareholder", "disclosure of interests")),
    ("decisions", ("cold shoulder", "market misconduct", "tribunal", "decision")),
    ("events", ("event", "conference", "seminar", "workshop")),
    ("corporate", ("corporate", "listing", "takeover", "merger", "acquisition")),
    ("policy", ("policy", "statement", "rule", "regulatory", "guidelines", "framework")),
)

TOPIC_KEYWORDS = (
    "virtual asset",
    "crypto",
    "fund management",
    "securities",
    "derivatives",
    "market misconduct",
    "licensing",
    "compliance",
    "insider dealing",
    "takeover",
    "disclosure",
)


def categorize_filing(title: str, category_tag: str | None = None, url: str | None = None) -> str:
    """
    Map a filing onto the fixed lowercase type vocabulary.

    URL path wins over the category badge, which wins over title keywords.
    """

    url_lower = (url or "").lower()
    for category in _URL_CATEGORIES:
        if f"/{category}" in url_lower:
            return category

    if category_tag:
        tag = category_tag.lower()
        for category in (*_URL_CATEGORIES, "circular", "consultation"):
            if category in tag:
                return category
        if "news" in tag or "announcement" in tag:
            return "news"

    lower = title.lower()
    for category, keywords in _TITLE_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return category
    return "news"


def extract_tags(title: str, summary: str | None) -> tuple[str, ...]:
    text = f"{title} {summary or ''}".lower()
    return tuple(keyword for keyword in TOPIC_KEYWORDS if keyword in text)


def filing_reference(url: str | None, filing_date_iso: str, title: str) -> str:
    if url:
        ref_match = re.search(r"refNo=([A-Za-z0-9-]+)", url)
        if ref_match:
            return f"hksfc-{ref_match.group(1)}"
        id_match = re.search(r"/(\d+)/?$", url)
        if id_match:
            return f"hksfc-{id_match.group(1)}"
    # Keyed on content so a reordered listing maps to the same reference.
    digest = hashlib.sha256(" ".join(title.lower().split()).encode("utf-8")).hexdigest()[:12]
    return f"hksfc-{filing_date_iso.replace('-', '')}-{digest}"


class FilingsAdapter(SourceAdapter):
    source = "hksfc"

    def _build_row(
        self,
        raw: dict[str, Any],
        index: int,
        context: dict[str, Any],
        attempt: AttemptMetadata,
        issues: RowIssues,
    ) -> FilingRow | None:
        title = issues.require_text(raw, "title")
        filing_date = issues.require_date(raw, "filing_date", self.config.date_format)
        if issues.issues or filing_date is None:
            return None
        if attempt.date_range is not None and not attempt.date_range.contains(filing_date):
            return None

        url = clean_text(raw.get("link")) or None
        summary = clean_text(raw.get("summary")) or None
        filing_type = categorize_filing(title, clean_text(raw.get("category")) or None, url)
        return FilingRow(
            reference=filing_reference(url, filing_date.isoformat(), title),
            title=title,
            filing_type=filing_type,
            filing_date=filing_date,
            url=url,
            summary=summary,
            tags=extract_tags(title, summary),
        )
