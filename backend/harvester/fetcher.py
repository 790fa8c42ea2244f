"""Rate-limited HTTP access shared by the sitemap, page and image paths."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


@dataclass(slots=True)
class ScraperConfig:
    """Tunables for fetching, extraction retries and image output."""

    rate_limit_interval: float = 2.0
    fetch_attempts: int = 3
    retry_delay: float = 5.0
    request_timeout: float = 30.0
    extraction_attempts: int = 3
    backoff_base: float = 1.0
    backoff_cap: float = 5.0
    image_width: int = 300
    image_height: int = 450
    image_quality: int = 80
    user_agent: str = DEFAULT_USER_AGENT

    def request_headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            "Accept-Encoding": "gzip, deflate",
            "Upgrade-Insecure-Requests": "1",
        }


class RateLimiter:
    """Keeps consecutive requests at least ``min_interval`` seconds apart.

    The limiter owns the timestamp of the last request. Controllers that should
    be throttled together must be handed the same instance.
    """

    def __init__(
        self,
        min_interval: float,
        *,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self.min_interval = min_interval
        self.last_request_time: float | None = None
        self._sleep = sleep
        self._clock = clock
        self._lock = asyncio.Lock()

    async def wait(self) -> float:
        """Sleep until the next request is allowed and claim the slot.

        Returns the number of seconds spent waiting.
        """

        async with self._lock:
            waited = 0.0
            if self.last_request_time is not None:
                elapsed = self._clock() - self.last_request_time
                if elapsed < self.min_interval:
                    waited = self.min_interval - elapsed
                    await self._sleep(waited)
            self.last_request_time = self._clock()
            return waited


class FetchController:
    """Async HTTP GET wrapper with rate limiting and bounded retries."""

    def __init__(
        self,
        config: ScraperConfig | None = None,
        *,
        limiter: RateLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self.config = config or ScraperConfig()
        self.limiter = limiter or RateLimiter(
            self.config.rate_limit_interval, sleep=sleep, clock=clock
        )
        self._sleep = sleep
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "FetchController":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.aclose()
        return False

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self.config.request_headers(),
                timeout=self.config.request_timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def sleep(self, seconds: float) -> None:
        await self._sleep(seconds)

    def backoff_delay(self, attempt: int) -> float:
        """Exponential delay before retry ``attempt + 1`` (attempts count from 1)."""

        delay = self.config.backoff_base * (2 ** max(attempt - 1, 0))
        return min(delay, self.config.backoff_cap)

    async def fetch(self, url: str, *, attempts: int | None = None) -> httpx.Response:
        """GET ``url`` and return the successful response.

        Each attempt waits for the rate limiter. Network errors and non-2xx
        responses are retried after ``retry_delay`` until the attempt budget is
        spent, then the last error is raised.
        """

        budget = max(attempts if attempts is not None else self.config.fetch_attempts, 1)
        client = self._ensure_client()
        last_error: httpx.HTTPError | None = None

        for attempt in range(1, budget + 1):
            await self.limiter.wait()
            try:
                response = await client.get(url)
                response.raise_for_status()
                return response
            except httpx.HTTPError as exc:
                last_error = exc
                if attempt < budget:
                    logger.warning(
                        "Request to %s failed (%s), retrying in %.1fs (%d/%d)",
                        url,
                        exc,
                        self.config.retry_delay,
                        attempt,
                        budget,
                    )
                    await self._sleep(self.config.retry_delay)

        assert last_error is not None
        logger.error("Giving up on %s after %d attempts: %s", url, budget, last_error)
        raise last_error

    async def fetch_text(self, url: str, *, attempts: int | None = None) -> str:
        response = await self.fetch(url, attempts=attempts)
        return response.text

    async def fetch_bytes(self, url: str, *, attempts: int | None = 1) -> bytes:
        response = await self.fetch(url, attempts=attempts)
        return response.content
