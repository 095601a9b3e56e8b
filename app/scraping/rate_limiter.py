"""
Domain-aware request pacing for the async scheduler.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable


class DomainRateLimiter:
    """
    Enforces a minimum interval between request starts per domain.
    """

    def __init__(
        self,
        *,
        default_interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._default_interval_seconds = max(0.0, default_interval_seconds)
        self._clock = clock
        self._sleep = sleep
        self._last_request_by_domain: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def effective_interval(self, crawl_delay_seconds: float | None = None) -> float:
        interval = self._default_interval_seconds
        if crawl_delay_seconds is not None:
            interval = max(interval, max(0.0, crawl_delay_seconds))
        return interval

    async def wait(self, domain: str, *, crawl_delay_seconds: float | None = None) -> float:
        """
        Sleep as needed so request starts on `domain` respect the effective delay.

        Returns the number of seconds waited.
        """

        key = domain.lower()
        if not key:
            return 0.0

        min_interval = self.effective_interval(crawl_delay_seconds)
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            last_time = self._last_request_by_domain.get(key)
            waited = 0.0
            if last_time is not None:
                wait_seconds = min_interval - (self._clock() - last_time)
                if wait_seconds > 0:
                    await self._sleep(wait_seconds)
                    waited = wait_seconds
            self._last_request_by_domain[key] = self._clock()
            return waited
