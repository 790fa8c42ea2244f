"""Tests for the rate limiter and retrying fetch controller."""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import httpx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.harvester import FetchController, RateLimiter, ScraperConfig  # noqa: E402


class FakeClock:
    """Monotonic clock that only advances when the code under test sleeps."""

    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def test_rate_limiter_spaces_consecutive_requests() -> None:
    clock = FakeClock()
    limiter = RateLimiter(2.0, sleep=clock.sleep, clock=clock)

    async def scenario() -> list[float]:
        waits = [await limiter.wait()]
        clock.now += 0.5
        waits.append(await limiter.wait())
        clock.now += 10
        waits.append(await limiter.wait())
        return waits

    waits = asyncio.run(scenario())

    assert waits == [0.0, 1.5, 0.0]
    assert clock.sleeps == [1.5]


def test_shared_limiter_throttles_across_controllers() -> None:
    """Two controllers handed the same limiter share one request clock."""

    clock = FakeClock()
    limiter = RateLimiter(2.0, sleep=clock.sleep, clock=clock)
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="ok"))

    async def scenario() -> None:
        async with FetchController(limiter=limiter, transport=transport, sleep=clock.sleep) as first:
            async with FetchController(limiter=limiter, transport=transport, sleep=clock.sleep) as second:
                await first.fetch_text("https://site.example/a")
                await second.fetch_text("https://site.example/b")

    asyncio.run(scenario())

    assert clock.sleeps == [2.0]


def test_fetch_retries_until_success() -> None:
    clock = FakeClock()
    statuses = iter([500, 502, 200])
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers["User-Agent"])
        return httpx.Response(next(statuses), text="page")

    config = ScraperConfig(rate_limit_interval=0, fetch_attempts=3, retry_delay=5.0, user_agent="reelharvest-test/1.0")

    async def scenario() -> str:
        async with FetchController(
            config, transport=httpx.MockTransport(handler), sleep=clock.sleep, clock=clock
        ) as fetcher:
            return await fetcher.fetch_text("https://site.example/movie/a/")

    assert asyncio.run(scenario()) == "page"
    assert clock.sleeps == [5.0, 5.0]
    assert seen == ["reelharvest-test/1.0"] * 3


def test_fetch_raises_last_error_after_budget() -> None:
    clock = FakeClock()
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(503)

    config = ScraperConfig(rate_limit_interval=0, fetch_attempts=3, retry_delay=1.0)

    async def scenario() -> None:
        async with FetchController(
            config, transport=httpx.MockTransport(handler), sleep=clock.sleep, clock=clock
        ) as fetcher:
            await fetcher.fetch("https://site.example/movie/a/")

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(scenario())
    assert len(calls) == 3
    assert clock.sleeps == [1.0, 1.0]


def test_fetch_bytes_defaults_to_single_attempt() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(404)

    async def no_sleep(_: float) -> None:
        return None

    config = ScraperConfig(rate_limit_interval=0, fetch_attempts=3)

    async def scenario() -> None:
        async with FetchController(config, transport=httpx.MockTransport(handler), sleep=no_sleep) as fetcher:
            await fetcher.fetch_bytes("https://site.example/poster.jpg")

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(scenario())
    assert len(calls) == 1


def test_backoff_delay_doubles_and_caps() -> None:
    fetcher = FetchController(ScraperConfig(backoff_base=1.0, backoff_cap=5.0))

    assert [fetcher.backoff_delay(attempt) for attempt in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]
