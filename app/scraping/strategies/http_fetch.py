"""
Plain HTTP GET retrieval.
"""

from __future__ import annotations

import asyncio

import requests

from app.scraping.config.models import SourceConfig
from app.scraping.errors import StrategyError
from app.scraping.strategies.base import ExtractionStrategy, FetchedPage, parse_retry_after
from app.scraping.types import ErrorKind, FetchTarget, StrategyKind


class HTTPFetchStrategy(ExtractionStrategy):
    """
    Cheapest strategy: one `requests` GET, run off the event loop.
    """

    kind = StrategyKind.HTTP_FETCH

    def __init__(
        self,
        *,
        user_agent: str,
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self._user_agent = user_agent
        self._timeout_seconds = timeout_seconds
        self._session = session or requests.Session()

    async def _retrieve(self, target: FetchTarget, config: SourceConfig) -> FetchedPage:
        return await asyncio.to_thread(self._get, target, config)

    def _get(self, target: FetchTarget, config: SourceConfig) -> FetchedPage:
        headers = {
            "User-Agent": self._user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            **config.headers,
        }
        try:
            response = self._session.get(target.url, headers=headers, timeout=self._timeout_seconds)
        except (requests.Timeout, requests.ConnectionError) as exc:
            raise StrategyError(
                f"GET {target.url} failed: {exc}",
                kind=ErrorKind.NETWORK_TIMEOUT,
                url=target.url,
            ) from exc
        except requests.RequestException as exc:
            raise StrategyError(
                f"GET {target.url} failed: {exc}",
                kind=ErrorKind.HTTP_STATUS,
                url=target.url,
            ) from exc

        status = response.status_code
        if status == 429:
            raise StrategyError(
                f"GET {target.url} rate limited",
                kind=ErrorKind.RATE_LIMITED,
                url=target.url,
                status_code=status,
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )
        if status == 408:
            raise StrategyError(
                f"GET {target.url} timed out server-side",
                kind=ErrorKind.NETWORK_TIMEOUT,
                url=target.url,
                status_code=status,
            )
        if not 200 <= status < 300:
            raise StrategyError(
                f"GET {target.url} returned HTTP {status}",
                kind=ErrorKind.HTTP_STATUS,
                url=target.url,
                status_code=status,
            )
        return FetchedPage(content=response.text, status_code=status)
