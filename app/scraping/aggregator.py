"""
Collects request outcomes and persists successful records.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace

from app.scraping.logging_utils import log_event
from app.scraping.storage.base import RecordStorage
from app.scraping.types import (
    BatchReport,
    ErrorKind,
    HealedSelector,
    OutcomeStatus,
    RequestOutcome,
)

logger = logging.getLogger(__name__)

STORED_STATUSES = frozenset({OutcomeStatus.SUCCESS, OutcomeStatus.PARTIAL})


class ResultAggregator:
    """
    Accumulates outcomes in completion order and builds the batch report.
    """

    def __init__(self) -> None:
        self._outcomes: list[RequestOutcome] = []

    def add(self, outcome: RequestOutcome) -> None:
        self._outcomes.append(outcome)

    @property
    def outcomes(self) -> list[RequestOutcome]:
        return list(self._outcomes)

    async def finalize(
        self,
        storage: RecordStorage | None,
        healed_selectors: list[HealedSelector] | None = None,
    ) -> BatchReport:
        """
        Upsert every stored-status record and fill the report counts.

        A storage failure turns that request's outcome into `storage-failed`.
        """

        report = BatchReport(healed_selectors=list(healed_selectors or []))
        for outcome in self._outcomes:
            if storage is not None and outcome.record is not None and outcome.status in STORED_STATUSES:
                try:
                    result = await asyncio.to_thread(storage.upsert, outcome.record)
                except Exception as exc:
                    log_event(
                        logger,
                        logging.ERROR,
                        "record_storage_failed",
                        source=outcome.request.source,
                        target_key=outcome.target_key,
                        error=str(exc),
                    )
                    outcome = replace(
                        outcome,
                        status=OutcomeStatus.FAILED,
                        reason=ErrorKind.STORAGE_FAILED.value,
                    )
                else:
                    report.records_inserted += result.inserted
                    report.records_updated += result.updated

            if outcome.status in (OutcomeStatus.FAILED, OutcomeStatus.CANCELLED):
                report.records_failed += 1
            report.outcomes.append(outcome)
        return report
