"""
Base class for page retrieval strategies.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar

from app.scraping.config.models import SourceConfig
from app.scraping.errors import StrategyError
from app.scraping.logging_utils import elapsed_ms, log_event
from app.scraping.types import ErrorKind, ExtractionAttempt, FetchTarget, StrategyKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchedPage:
    content: str
    status_code: int | None = None


class ExtractionStrategy(ABC):
    """
    Retrieves one page and reports the result as an `ExtractionAttempt`.

    Subclasses implement `_retrieve` and raise `StrategyError` with the
    matching `ErrorKind`; `fetch` never raises for retrieval failures.
    """

    kind: ClassVar[StrategyKind]

    async def fetch(
        self,
        target: FetchTarget,
        config: SourceConfig,
        *,
        attempt_number: int = 1,
    ) -> ExtractionAttempt:
        started_at = time.perf_counter()
        try:
            page = await self._retrieve(target, config)
            self._check_shape(page, target, config)
        except StrategyError as exc:
            log_event(
                logger,
                logging.WARNING,
                "extraction_attempt_failed",
                source=target.source,
                target_key=target.target_key,
                strategy=self.kind.value,
                attempt=attempt_number,
                error_kind=exc.kind.value,
                status_code=exc.status_code,
                error=str(exc),
            )
            return ExtractionAttempt(
                strategy_used=self.kind,
                url=target.url,
                error=str(exc),
                error_kind=exc.kind,
                http_status=exc.status_code,
                duration_ms=elapsed_ms(started_at),
                attempt_number=attempt_number,
                retry_after_seconds=exc.retry_after,
            )

        duration = elapsed_ms(started_at)
        log_event(
            logger,
            logging.INFO,
            "extraction_attempt_succeeded",
            source=target.source,
            target_key=target.target_key,
            strategy=self.kind.value,
            attempt=attempt_number,
            status_code=page.status_code,
            content_length=len(page.content),
            duration_ms=duration,
        )
        return ExtractionAttempt(
            strategy_used=self.kind,
            url=target.url,
            raw_content=page.content,
            http_status=page.status_code,
            duration_ms=duration,
            attempt_number=attempt_number,
        )

    @abstractmethod
    async def _retrieve(self, target: FetchTarget, config: SourceConfig) -> FetchedPage:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None

    def _check_shape(self, page: FetchedPage, target: FetchTarget, config: SourceConfig) -> None:
        body = page.content.strip() if page.content else ""
        if not body:
            raise StrategyError(
                f"{self.kind.value} returned empty content",
                kind=ErrorKind.CONTENT_SHAPE,
                url=target.url,
                status_code=page.status_code,
            )
        if len(body) < config.min_content_length:
            raise StrategyError(
                f"{self.kind.value} returned {len(body)} characters, "
                f"below the {config.min_content_length} expected for {config.name}",
                kind=ErrorKind.CONTENT_SHAPE,
                url=target.url,
                status_code=page.status_code,
            )


def parse_retry_after(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        return max(0.0, float(raw.strip()))
    except ValueError:
        return None
