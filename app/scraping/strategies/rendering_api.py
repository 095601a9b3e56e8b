"""
Hosted rendering API retrieval (Firecrawl scrape endpoint).
"""

from __future__ import annotations

import asyncio
from typing import Any

import requests

from app.scraping.config.models import SourceConfig
from app.scraping.errors import StrategyError
from app.scraping.strategies.base import ExtractionStrategy, FetchedPage, parse_retry_after
from app.scraping.types import ErrorKind, FetchTarget, StrategyKind


class RenderingAPIStrategy(ExtractionStrategy):
    """
    Most capable and most expensive strategy: delegate rendering to Firecrawl.
    """

    kind = StrategyKind.RENDERING_API

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = "https://api.firecrawl.dev",
        timeout_seconds: float = 30.0,
        wait_for_ms: int = 5000,
        session: requests.Session | None = None,
    ) -> None:
        self._api_key = api_key
        self._endpoint = f"{base_url.rstrip('/')}/v1/scrape"
        self._timeout_seconds = timeout_seconds
        self._wait_for_ms = wait_for_ms
        self._session = session or requests.Session()

    async def _retrieve(self, target: FetchTarget, config: SourceConfig) -> FetchedPage:
        if not self._api_key:
            raise StrategyError(
                "FIRECRAWL_API_KEY is not configured",
                kind=ErrorKind.STRATEGY_UNAVAILABLE,
                url=target.url,
            )
        return await asyncio.to_thread(self._scrape, target, config)

    def _payload(self, target: FetchTarget, config: SourceConfig) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "url": target.url,
            "formats": ["html"],
            "onlyMainContent": False,
            "waitFor": self._wait_for_ms,
            "timeout": int(self._timeout_seconds * 1000),
        }
        if config.headers:
            payload["headers"] = dict(config.headers)
        return payload

    def _scrape(self, target: FetchTarget, config: SourceConfig) -> FetchedPage:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self._session.post(
                self._endpoint,
                headers=headers,
                json=self._payload(target, config),
                # Leave headroom over the render budget passed to the API.
                timeout=self._timeout_seconds + 15,
            )
        except requests.Timeout as exc:
            raise StrategyError(
                f"rendering API timed out for {target.url}",
                kind=ErrorKind.RENDER_TIMEOUT,
                url=target.url,
            ) from exc
        except requests.RequestException as exc:
            raise StrategyError(
                f"rendering API unreachable: {exc}",
                kind=ErrorKind.NETWORK_TIMEOUT,
                url=target.url,
            ) from exc

        status = response.status_code
        if status in (402, 429):
            raise StrategyError(
                f"rendering API rejected the request with HTTP {status}",
                kind=ErrorKind.RATE_LIMITED,
                url=target.url,
                status_code=status,
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )
        if status == 408:
            raise StrategyError(
                f"rendering API timed out rendering {target.url}",
                kind=ErrorKind.RENDER_TIMEOUT,
                url=target.url,
                status_code=status,
            )
        if status in (401, 403):
            raise StrategyError(
                f"rendering API refused credentials (HTTP {status})",
                kind=ErrorKind.STRATEGY_UNAVAILABLE,
                url=target.url,
                status_code=status,
            )
        if not 200 <= status < 300:
            raise StrategyError(
                f"rendering API returned HTTP {status}",
                kind=ErrorKind.HTTP_STATUS,
                url=target.url,
                status_code=status,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise StrategyError(
                "rendering API returned a non-JSON body",
                kind=ErrorKind.CONTENT_SHAPE,
                url=target.url,
                status_code=status,
            ) from exc

        if not isinstance(body, dict) or not body.get("success", False):
            error = body.get("error") if isinstance(body, dict) else None
            raise StrategyError(
                f"rendering API reported failure: {error or 'unknown error'}",
                kind=ErrorKind.HTTP_STATUS,
                url=target.url,
                status_code=status,
            )

        data = body.get("data") or {}
        if not isinstance(data, dict):
            raise StrategyError(
                f"rendering API returned {type(data).__name__} data for {target.url}",
                kind=ErrorKind.CONTENT_SHAPE,
                url=target.url,
                status_code=status,
            )
        metadata = data.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        page_status = metadata.get("statusCode")
        if isinstance(page_status, int) and page_status >= 400:
            raise StrategyError(
                f"rendered page {target.url} returned HTTP {page_status}",
                kind=ErrorKind.RATE_LIMITED if page_status == 429 else ErrorKind.HTTP_STATUS,
                url=target.url,
                status_code=page_status,
            )
        html = data.get("html") or data.get("rawHtml") or ""
        return FetchedPage(content=str(html), status_code=page_status if isinstance(page_status, int) else status)
