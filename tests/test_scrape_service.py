"""
tests/test_scrape_service.py

Pytest tests for ScrapeService wiring and request expansion.

Every run here uses test mode, so strategies are fixture-backed and storage
is in-memory.
"""

from __future__ import annotations

import asyncio
from datetime import date

import pytest

from app.scraping.errors import ConfigError
from app.scraping.types import DateRange, ErrorKind, OutcomeStatus, StrategyKind
from app.services.scrape_service import ScrapeService, build_requests, parse_strategy


def _run(service: ScrapeService, **kwargs):
    kwargs.setdefault("test_mode", True)
    return asyncio.run(service.run(**kwargs))


def _row_keys(report) -> list[tuple[str, ...]]:
    return sorted(row.natural_key() for record in report.records for row in record.rows)


class TestScrapeServiceRun:
    def test_holdings_batch_in_test_mode(self, settings) -> None:
        report = _run(ScrapeService(settings=settings), source="ccass", target_keys=["00700", "5"])

        response = report.to_response()
        assert response["success"] is True
        assert response["recordsInserted"] == 6
        assert response["recordsUpdated"] == 0
        assert response["recordsFailed"] == 0
        assert {detail["targetKey"] for detail in response["perRequestDetail"]} == {"00700", "5"}
        assert all(detail["outcome"] == "success" for detail in response["perRequestDetail"])
        assert not any(detail["reason"] == ErrorKind.SELECTOR_EXHAUSTED.value for detail in response["perRequestDetail"])

    def test_test_mode_reruns_are_identical(self, settings) -> None:
        service = ScrapeService(settings=settings)

        first = _run(service, source="hkex-disclosure", target_keys=["00700"])
        second = _run(service, source="hkex-disclosure", target_keys=["00700"])

        assert first.to_response() == second.to_response()
        assert _row_keys(first) == _row_keys(second)

    def test_strategy_hint_is_ignored_in_test_mode(self, settings) -> None:
        report = _run(
            ScrapeService(settings=settings),
            source="hksfc",
            target_keys=["news"],
            strategy="rendering-api",
        )

        outcome = report.outcome_for("news")
        assert outcome.status is OutcomeStatus.SUCCESS
        assert {attempt.strategy_used for attempt in outcome.attempts} == {StrategyKind.MOCK}

    def test_date_range_reaches_adapter(self, settings) -> None:
        report = _run(
            ScrapeService(settings=settings),
            source="hksfc",
            target_keys=["news"],
            start=date(2025, 1, 8),
            end=date(2025, 1, 31),
        )

        assert report.records_inserted == 2

    def test_unknown_source_is_a_config_error(self, settings) -> None:
        with pytest.raises(ConfigError, match="Unknown source"):
            _run(ScrapeService(settings=settings), source="nasdaq", target_keys=["AAPL"])

    def test_pre_cancelled_batch_reports_every_target(self, settings) -> None:
        cancel_event = asyncio.Event()
        cancel_event.set()

        report = _run(
            ScrapeService(settings=settings),
            source="ccass",
            target_keys=["00700", "00005"],
            cancel_event=cancel_event,
        )

        assert [outcome.status for outcome in report.outcomes] == [OutcomeStatus.CANCELLED] * 2
        assert report.records_inserted == 0


class TestSchedulerConfig:
    def test_test_mode_removes_pacing_and_backoff(self, settings) -> None:
        config = ScrapeService(settings=settings).scheduler_config(test_mode=True)

        assert config.inter_request_delay_ms == 0
        assert config.backoff_initial_seconds == 0.0
        assert config.backoff_max_seconds == 0.0
        assert config.max_retries_per_request == settings.max_retries

    def test_live_mode_follows_settings(self, settings) -> None:
        config = ScrapeService(settings=settings).scheduler_config(test_mode=False)

        assert config.backoff_initial_seconds == settings.backoff_initial_seconds
        assert config.user_agent == "TestBot/1.0"


class TestBuildRequests:
    def test_keys_are_trimmed_and_deduplicated_in_order(self) -> None:
        requests = build_requests(source="ccass", target_keys=[" 00700", "00005", "00700 "])

        assert [request.target_key for request in requests] == ["00700", "00005"]

    def test_options_and_range_are_shared(self) -> None:
        requests = build_requests(
            source="hksfc",
            target_keys=["news", "circulars"],
            strategy="Headless-Render",
            start=date(2025, 1, 1),
            end=date(2025, 1, 31),
            strict=True,
        )

        assert {request.strategy_hint for request in requests} == {StrategyKind.HEADLESS_RENDER}
        assert {request.date_range for request in requests} == {DateRange(date(2025, 1, 1), date(2025, 1, 31))}
        assert all(request.options.strict for request in requests)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"target_keys": []},
            {"target_keys": ["00700", "  "]},
            {"target_keys": ["00700"], "start": date(2025, 1, 1)},
        ],
    )
    def test_invalid_invocations_raise(self, kwargs) -> None:
        with pytest.raises(ConfigError):
            build_requests(source="ccass", **kwargs)

    def test_reversed_range_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            build_requests(source="ccass", target_keys=["00700"], start=date(2025, 2, 1), end=date(2025, 1, 1))


class TestParseStrategy:
    def test_blank_means_no_hint(self) -> None:
        assert parse_strategy(None) is None
        assert parse_strategy("  ") is None

    def test_unknown_value_lists_allowed_variants(self) -> None:
        with pytest.raises(ConfigError, match="http-fetch"):
            parse_strategy("carrier-pigeon")
