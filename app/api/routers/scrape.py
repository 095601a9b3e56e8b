"""
app/api/routers/scrape.py

Regulatory scrape batch endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.schemas.scrape import ScrapeBatchResponse, ScrapeRequestBody
from app.scraping.errors import ConfigError
from app.services.scrape_service import ScrapeService, get_scrape_service

router = APIRouter(tags=["scrape"])


@router.post("/scrape", response_model=ScrapeBatchResponse, response_model_by_alias=True)
async def run_scrape(
    body: ScrapeRequestBody,
    scrape_service: ScrapeService = Depends(get_scrape_service),
) -> ScrapeBatchResponse:
    """
    Run one scrape batch and report per-target outcomes.

    Configuration errors (unknown source, unsupported strategy, empty target
    list) are rejected with 400; per-target failures are reported in the body.
    """

    options = body.options
    date_range = options.date_range
    try:
        report = await scrape_service.run(
            source=body.source,
            target_keys=options.target_keys,
            strategy=body.strategy,
            start=date_range.start if date_range else None,
            end=date_range.end if date_range else None,
            test_mode=options.test_mode,
            strict=options.strict,
            allow_partial=options.allow_partial,
        )
    except (ConfigError, ValueError, FileNotFoundError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    return ScrapeBatchResponse.model_validate(report.to_response())
