from __future__ import annotations

import asyncio
import unittest

from app.scraping.rate_limiter import DomainRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestDomainRateLimiter(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()

    def _limiter(self, interval: float) -> DomainRateLimiter:
        return DomainRateLimiter(default_interval_seconds=interval, clock=self.clock, sleep=self.clock.sleep)

    async def test_first_request_does_not_wait(self) -> None:
        limiter = self._limiter(2.0)

        self.assertEqual(await limiter.wait("example.hk"), 0.0)
        self.assertEqual(self.clock.sleeps, [])

    async def test_second_request_waits_remaining_interval(self) -> None:
        limiter = self._limiter(2.0)

        await limiter.wait("example.hk")
        self.clock.now += 0.5
        waited = await limiter.wait("example.hk")

        self.assertEqual(waited, 1.5)
        self.assertEqual(self.clock.sleeps, [1.5])

    async def test_crawl_delay_overrides_shorter_interval(self) -> None:
        limiter = self._limiter(1.0)

        await limiter.wait("example.hk", crawl_delay_seconds=4.0)
        waited = await limiter.wait("example.hk", crawl_delay_seconds=4.0)

        self.assertEqual(waited, 4.0)
        self.assertEqual(limiter.effective_interval(4.0), 4.0)
        self.assertEqual(limiter.effective_interval(0.5), 1.0)

    async def test_domains_are_paced_independently(self) -> None:
        limiter = self._limiter(2.0)

        waits = [
            await limiter.wait("a.example.hk"),
            await limiter.wait("b.example.hk"),
            await limiter.wait("A.EXAMPLE.HK"),
        ]

        self.assertEqual(waits, [0.0, 0.0, 2.0])

    async def test_concurrent_waiters_are_serialized(self) -> None:
        limiter = self._limiter(3.0)

        waits = await asyncio.gather(*(limiter.wait("example.hk") for _ in range(3)))

        self.assertEqual(sorted(waits), [0.0, 3.0, 3.0])
        self.assertEqual(self.clock.now, 106.0)


if __name__ == "__main__":
    unittest.main()
