"""
tests/test_html_parsing.py

Pytest tests for HTMLParsingLayer selector extraction and date parsing.
"""

from __future__ import annotations

import json
import logging
from datetime import date

import pytest

from app.scraping.config import ExtractionRules, FieldRule
from app.scraping.errors import SelectorMissError
from app.scraping.parsing import html_parsers
from app.scraping.parsing.html_parsers import HTMLParsingLayer

PAGE_URL = "https://apps.sfc.hk/edistributionWeb/gateway/EN/news-and-announcements/news/"


class TestExtract:
    def test_ccass_fixture_rows_and_page_fields(self, sources, fixture_html) -> None:
        content = HTMLParsingLayer.extract(
            html=fixture_html("ccass", "00700"),
            rules=sources["ccass"].rules,
            page_url=PAGE_URL,
        )

        assert len(content.rows) == 3
        first = content.rows[0]
        assert first["participant_id"] == "C00019"
        assert first["shareholding"] == "3,012,345,678"
        assert first["percentage"] == "32.61%"
        assert content.page["data_date"] == "2025/01/15"
        assert content.page["stock_name"] == "TENCENT HOLDINGS LIMITED"

    def test_links_are_absolute(self, sources, fixture_html) -> None:
        content = HTMLParsingLayer.extract(
            html=fixture_html("hksfc", "news"),
            rules=sources["hksfc"].rules,
            page_url=PAGE_URL,
        )

        assert content.rows[0]["link"] == (
            "https://apps.sfc.hk/edistributionWeb/gateway/EN/news-and-announcements/news/doc?refNo=25PR08"
        )
        assert content.rows[0]["title"].endswith("$4 million for internal control failures")

    def test_list_fields_keep_every_match(self, sources, fixture_html) -> None:
        content = HTMLParsingLayer.extract(
            html=fixture_html("sfc-statistics", "market-highlights"),
            rules=sources["sfc-statistics"].rules,
            page_url=PAGE_URL,
        )

        assert content.page["columns"] == ["Main Board", "GEM"]
        assert content.page["table_id"] == "market-highlights"
        assert content.rows[0]["values"] == ["2,315", "320"]

    def test_missing_row_container_raises(self, sources) -> None:
        with pytest.raises(SelectorMissError) as excinfo:
            HTMLParsingLayer.extract(
                html="<html><body><p>maintenance</p></body></html>",
                rules=sources["ccass"].rules,
                page_url=PAGE_URL,
            )

        assert excinfo.value.field_name == "rows"

    def test_required_field_missing_everywhere_raises(self, sources, fixture_html) -> None:
        rules = sources["ccass"].rules.with_selector("shareholding", ".col-holding")

        with pytest.raises(SelectorMissError) as excinfo:
            HTMLParsingLayer.extract(html=fixture_html("ccass", "00700"), rules=rules, page_url=PAGE_URL)

        assert excinfo.value.field_name == "shareholding"
        assert excinfo.value.selector == ".col-holding"

    def test_optional_field_missing_is_none(self, sources, fixture_html) -> None:
        rules = sources["ccass"].rules.with_selector("address", ".col-addr")

        content = HTMLParsingLayer.extract(html=fixture_html("ccass", "00700"), rules=rules, page_url=PAGE_URL)

        assert all(row["address"] is None for row in content.rows)

    def test_invalid_selector_is_a_miss(self) -> None:
        rules = ExtractionRules(
            rows=FieldRule(name="rows", selector="ul > li", intent="rows"),
            fields=(FieldRule(name="title", selector="h3[[", intent="title"),),
        )

        with pytest.raises(SelectorMissError, match="invalid selector"):
            HTMLParsingLayer.extract(html="<ul><li><h3>x</h3></li></ul>", rules=rules, page_url=PAGE_URL)

    def test_header_only_rows_are_skipped(self) -> None:
        rules = ExtractionRules(
            rows=FieldRule(name="rows", selector="table tr", intent="rows"),
            fields=(FieldRule(name="cell", selector="td", intent="cell"),),
        )
        html = "<table><tr><th>Heading</th></tr><tr><td>value</td></tr></table>"

        content = HTMLParsingLayer.extract(html=html, rules=rules, page_url=PAGE_URL)

        assert content.rows == ({"cell": "value"},)

    def test_rows_past_cap_are_logged(self, monkeypatch, caplog) -> None:
        monkeypatch.setattr(html_parsers, "MAX_ROWS", 2)
        rules = ExtractionRules(
            rows=FieldRule(name="rows", selector="ul > li", intent="rows"),
            fields=(FieldRule(name="title", selector="h3", intent="title"),),
        )
        html = "<ul>" + "".join(f"<li><h3>item {index}</h3></li>" for index in range(5)) + "</ul>"

        with caplog.at_level(logging.WARNING, logger=html_parsers.logger.name):
            content = HTMLParsingLayer.extract(html=html, rules=rules, page_url=PAGE_URL)

        assert [row["title"] for row in content.rows] == ["item 0", "item 1"]
        events = [json.loads(record.getMessage()) for record in caplog.records]
        truncated = [event for event in events if event["event"] == "extraction_rows_truncated"]
        assert truncated == [
            {
                "dropped_rows": 3,
                "event": "extraction_rows_truncated",
                "kept_rows": 2,
                "located_rows": 5,
                "selector": "ul > li",
                "url": PAGE_URL,
            }
        ]


class TestParseDate:
    @pytest.mark.parametrize(
        ("value", "preferred", "expected"),
        [
            ("2025/01/15", "%Y/%m/%d", date(2025, 1, 15)),
            ("15/01/2025", "%d/%m/%Y", date(2025, 1, 15)),
            ("15 Jan 2025", "%d %b %Y", date(2025, 1, 15)),
            ("Published on 10 January 2025 at noon", None, date(2025, 1, 10)),
            ("2025-01-06", None, date(2025, 1, 6)),
        ],
    )
    def test_parses_known_layouts(self, value, preferred, expected) -> None:
        assert HTMLParsingLayer.parse_date(value, preferred) == expected

    @pytest.mark.parametrize("value", [None, "", "not a date", "32/13/2025"])
    def test_rejects_garbage(self, value) -> None:
        assert HTMLParsingLayer.parse_date(value) is None
