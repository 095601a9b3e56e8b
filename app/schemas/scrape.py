"""
app/schemas/scrape.py

Request and response schemas for scrape batch invocations.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DateRangeBody(BaseModel):
    """
    Inclusive date window for one invocation.
    """

    start: date
    end: date

    @model_validator(mode="after")
    def _check_order(self) -> "DateRangeBody":
        if self.end < self.start:
            raise ValueError("dateRange.end must not precede dateRange.start.")
        return self


class ScrapeOptionsBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_keys: list[str] = Field(default_factory=list, alias="targetKeys")
    date_range: DateRangeBody | None = Field(default=None, alias="dateRange")
    test_mode: bool = Field(default=False, alias="testMode")
    strict: bool = False
    allow_partial: bool = Field(default=False, alias="allowPartial")


class ScrapeRequestBody(BaseModel):
    """
    Invocation body consumed by `POST /scrape`.
    """

    source: str = Field(..., min_length=1)
    strategy: str | None = None
    options: ScrapeOptionsBody = Field(default_factory=ScrapeOptionsBody)


class PerRequestDetailResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_key: str = Field(..., alias="targetKey")
    outcome: str
    reason: str | None = None


class ScrapeBatchResponse(BaseModel):
    """
    API response model for one scrape batch.
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    records_inserted: int = Field(..., ge=0, alias="recordsInserted")
    records_updated: int = Field(..., ge=0, alias="recordsUpdated")
    records_failed: int = Field(..., ge=0, alias="recordsFailed")
    per_request_detail: list[PerRequestDetailResponse] = Field(
        default_factory=list,
        alias="perRequestDetail",
    )
