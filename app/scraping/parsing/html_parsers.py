"""
BeautifulSoup-based selector extraction for regulatory pages.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any
from urllib.parse import urljoin

import soupsieve
from bs4 import BeautifulSoup, Tag

from app.scraping.config.models import ExtractionRules, FieldRule
from app.scraping.errors import SelectorMissError
from app.scraping.logging_utils import log_event

logger = logging.getLogger(__name__)

DATE_PATTERNS = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%B %d, %Y",
    "%b %d, %Y",
]
MAX_ROWS = 2000


@dataclass(frozen=True)
class ExtractedContent:
    """
    Raw field values located by selectors, one dict per row plus page-level values.
    """

    url: str
    rows: tuple[dict[str, Any], ...] = ()
    page: dict[str, Any] = field(default_factory=dict)


class HTMLParsingLayer:
    """
    Deterministic selector extraction over an HTML snapshot.
    """

    @classmethod
    def parse(cls, html: str) -> BeautifulSoup:
        return BeautifulSoup(html, "html.parser")

    @classmethod
    def extract(
        cls,
        *,
        html: str,
        rules: ExtractionRules,
        page_url: str,
    ) -> ExtractedContent:
        """
        Apply extraction rules to one snapshot.

        Raises `SelectorMissError` for the first rule whose selector is invalid,
        or locates nothing when the rule is required. A row field counts as
        located when at least one row yields it; per-row gaps are left to the
        source adapter.
        """

        soup = cls.parse(html)
        row_nodes = cls.select(soup, rules.rows)
        if not row_nodes:
            raise SelectorMissError(field_name=rules.rows.name, selector=rules.rows.selector)

        page: dict[str, Any] = {}
        for rule in rules.page_fields:
            nodes = cls.select(soup, rule)
            if not nodes and rule.required:
                raise SelectorMissError(field_name=rule.name, selector=rule.selector)
            page[rule.name] = cls._value(nodes, rule, page_url)

        if len(row_nodes) > MAX_ROWS:
            log_event(
                logger,
                logging.WARNING,
                "extraction_rows_truncated",
                url=page_url,
                selector=rules.rows.selector,
                located_rows=len(row_nodes),
                kept_rows=MAX_ROWS,
                dropped_rows=len(row_nodes) - MAX_ROWS,
            )

        rows: list[dict[str, Any]] = []
        located: set[str] = set()
        for node in row_nodes[:MAX_ROWS]:
            if node.find("th") is not None and node.find("td") is None:
                continue
            row: dict[str, Any] = {}
            for rule in rules.fields:
                nodes = cls.select(node, rule)
                if nodes:
                    located.add(rule.name)
                row[rule.name] = cls._value(nodes, rule, page_url)
            rows.append(row)

        for rule in rules.fields:
            if rule.required and rule.name not in located:
                raise SelectorMissError(field_name=rule.name, selector=rule.selector)

        return ExtractedContent(url=page_url, rows=tuple(rows), page=page)

    @classmethod
    def select(cls, root: Tag, rule: FieldRule) -> list[Tag]:
        try:
            return root.select(rule.selector)
        except soupsieve.SelectorSyntaxError as exc:
            raise SelectorMissError(
                field_name=rule.name,
                selector=rule.selector,
                detail=f"invalid selector: {exc}",
            ) from exc

    @classmethod
    def node_text(cls, node: Tag) -> str:
        # Depository tables repeat the column heading inside each cell.
        body = node.select_one(".mobile-list-body")
        if body is not None:
            node = body
        return cls.clean_text(node.get_text(" ", strip=True))

    @classmethod
    def _value(cls, nodes: list[Tag], rule: FieldRule, page_url: str) -> Any:
        if rule.data_type == "list":
            return [cls._single_value(node, rule, page_url) or "" for node in nodes]
        if not nodes:
            return None
        return cls._single_value(nodes[0], rule, page_url)

    @classmethod
    def _single_value(cls, node: Tag, rule: FieldRule, page_url: str) -> str | None:
        attribute = rule.attribute
        if attribute is None and rule.data_type == "link":
            attribute = "href"
            if node.name != "a":
                anchor = node.find("a")
                node = anchor if isinstance(anchor, Tag) else node

        if attribute is not None:
            raw = node.get(attribute)
            if isinstance(raw, list):
                raw = " ".join(raw)
            value = cls.clean_text(str(raw)) if raw is not None else ""
        else:
            value = cls.node_text(node)

        if not value:
            return None
        if rule.data_type == "link":
            return urljoin(page_url, value)
        return value

    @staticmethod
    def clean_text(value: str) -> str:
        return re.sub(r"\s+", " ", value).strip()

    @classmethod
    def parse_date(cls, value: str | None, preferred_format: str | None = None) -> date | None:
        """
        Parse a page date using the source's format first, then common layouts.
        """

        if not value:
            return None
        compact = cls.clean_text(value)
        patterns = [preferred_format] if preferred_format else []
        patterns.extend(pattern for pattern in DATE_PATTERNS if pattern != preferred_format)

        for pattern in patterns:
            try:
                return datetime.strptime(compact, pattern).date()
            except ValueError:
                continue

        tokens = re.findall(
            r"\b(?:\d{4}[-/]\d{2}[-/]\d{2}|\d{1,2}/\d{1,2}/\d{4}|"
            r"\d{1,2}\s+(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\s+\d{4})\b",
            compact,
            flags=re.IGNORECASE,
        )
        for token in tokens:
            for pattern in patterns:
                try:
                    return datetime.strptime(token, pattern).date()
                except ValueError:
                    continue
        return None
