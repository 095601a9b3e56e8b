"""
tests/test_scrape_api.py

Pytest tests for the POST /scrape endpoint contract.
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.routers import scrape_router
from app.services.scrape_service import ScrapeService, get_scrape_service


@pytest.fixture()
def client(settings) -> TestClient:
    app = FastAPI()
    app.include_router(scrape_router)
    app.dependency_overrides[get_scrape_service] = lambda: ScrapeService(settings=settings)
    return TestClient(app)


def _body(**options) -> dict:
    payload = {"targetKeys": ["00700"], "testMode": True}
    payload.update(options)
    return {"source": "ccass", "options": payload}


class TestScrapeEndpoint:
    def test_success_response_uses_camel_case_contract(self, client) -> None:
        response = client.post("/scrape", json=_body())

        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"success", "recordsInserted", "recordsUpdated", "recordsFailed", "perRequestDetail"}
        assert data["success"] is True
        assert data["recordsInserted"] == 3
        assert data["perRequestDetail"] == [{"targetKey": "00700", "outcome": "success", "reason": None}]

    def test_date_range_and_strategy_are_accepted(self, client) -> None:
        body = _body(dateRange={"start": "2025-01-08", "end": "2025-01-31"})
        body["source"] = "hksfc"
        body["strategy"] = "http-fetch"
        body["options"]["targetKeys"] = ["news"]

        response = client.post("/scrape", json=body)

        assert response.status_code == 200
        assert response.json()["recordsInserted"] == 2

    @pytest.mark.parametrize(
        "body",
        [
            {"source": "nasdaq", "options": {"targetKeys": ["AAPL"], "testMode": True}},
            {"source": "ccass", "options": {"targetKeys": [], "testMode": True}},
            {"source": "ccass", "strategy": "carrier-pigeon", "options": {"targetKeys": ["00700"], "testMode": True}},
        ],
    )
    def test_configuration_errors_are_bad_requests(self, client, body) -> None:
        response = client.post("/scrape", json=body)

        assert response.status_code == 400
        assert response.json()["detail"]

    def test_reversed_date_range_fails_validation(self, client) -> None:
        response = client.post("/scrape", json=_body(dateRange={"start": "2025-02-01", "end": "2025-01-01"}))

        assert response.status_code == 422

    def test_missing_source_fails_validation(self, client) -> None:
        response = client.post("/scrape", json={"options": {"targetKeys": ["00700"]}})

        assert response.status_code == 422
