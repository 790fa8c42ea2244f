"""Tests for scrape batches and their progress snapshots."""
from __future__ import annotations

import asyncio
import io
import sys
from pathlib import Path

import httpx
import pytest
from PIL import Image

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.harvester import (  # noqa: E402
    FetchController,
    ImageProcessor,
    MovieExtractor,
    MovieRecord,
    ScrapeOrchestrator,
    ScrapeProgress,
    ScraperConfig,
)

URLS = [f"https://site.example/movie/title-{index}/" for index in range(1, 6)]


def _detail_page(title: str, image: str | None = None) -> str:
    poster = f'<meta property="og:image" content="{image}">' if image else ""
    return f"<html><head>{poster}</head><body><h1>{title}</h1><p>Genre: Drama</p></body></html>"


def _png() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (60, 90), (10, 120, 200)).save(buffer, format="PNG")
    return buffer.getvalue()


def _fetcher(handler) -> FetchController:
    async def no_sleep(_: float) -> None:
        return None

    config = ScraperConfig(rate_limit_interval=0, fetch_attempts=1, extraction_attempts=1)
    return FetchController(config, transport=httpx.MockTransport(handler), sleep=no_sleep)


def _failing_third_url(request: httpx.Request) -> httpx.Response:
    url = str(request.url)
    if url == URLS[2]:
        raise httpx.ConnectError("connection reset", request=request)
    return httpx.Response(200, text=_detail_page(url.rstrip("/").rsplit("/", 1)[-1]))


def test_batch_isolates_failures_and_reports_every_item() -> None:
    stored: list[tuple[str, str | None, int]] = []
    snapshots: list[ScrapeProgress] = []

    def persist(movie: MovieRecord, image_data: str | None, sitemap_id: int) -> None:
        stored.append((movie.url, image_data, sitemap_id))

    async def scenario():
        async with _fetcher(_failing_third_url) as fetcher:
            orchestrator = ScrapeOrchestrator(MovieExtractor(fetcher), ImageProcessor(fetcher), persist)
            return await orchestrator.run_batch(URLS, 3, snapshots.append)

    result = asyncio.run(scenario())

    assert (result.success, result.failed) == (4, 1)
    assert [movie.url for movie in result.movies] == [URLS[0], URLS[1], URLS[3], URLS[4]]
    assert [url for url, _, _ in stored] == [URLS[0], URLS[1], URLS[3], URLS[4]]
    assert all(sitemap_id == 3 for _, _, sitemap_id in stored)

    assert len(snapshots) == len(URLS) + 1
    assert [snapshot.processed for snapshot in snapshots] == [1, 2, 3, 4, 5, 5]
    assert [snapshot.current_url for snapshot in snapshots[:-1]] == URLS
    assert all(snapshot.status == "running" for snapshot in snapshots[:-1])
    assert snapshots[2].failed == 1
    final = snapshots[-1]
    assert final.status == "completed"
    assert final.current_url is None
    assert (final.completed, final.failed, final.total) == (4, 1, 5)
    assert final.fraction == 1.0


def test_stream_can_be_collected_and_exposes_result() -> None:
    async def persist(movie: MovieRecord, image_data: str | None, sitemap_id: int) -> None:
        await asyncio.sleep(0)

    async def scenario():
        async with _fetcher(_failing_third_url) as fetcher:
            orchestrator = ScrapeOrchestrator(MovieExtractor(fetcher), ImageProcessor(fetcher), persist)
            stream = orchestrator.stream_batch(URLS[:2], 1)
            return [snapshot async for snapshot in stream], stream.result

    snapshots, result = asyncio.run(scenario())

    assert [snapshot.status for snapshot in snapshots] == ["running", "running", "completed"]
    assert result is not None
    assert result.success == 2


def test_empty_batch_emits_single_completion_snapshot() -> None:
    snapshots: list[ScrapeProgress] = []

    async def scenario():
        async with _fetcher(_failing_third_url) as fetcher:
            orchestrator = ScrapeOrchestrator(MovieExtractor(fetcher), ImageProcessor(fetcher), lambda *args: None)
            return await orchestrator.run_batch([], 1, snapshots.append)

    result = asyncio.run(scenario())

    assert (result.success, result.failed) == (0, 0)
    assert snapshots == [ScrapeProgress(total=0, status="completed")]


def test_missing_poster_still_persists_movie_without_image() -> None:
    stored: list[str | None] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith(".jpg"):
            return httpx.Response(404)
        return httpx.Response(200, text=_detail_page("Poster Gone", "https://cdn.example/gone.jpg"))

    def persist(movie: MovieRecord, image_data: str | None, sitemap_id: int) -> None:
        stored.append(image_data)

    async def scenario():
        async with _fetcher(handler) as fetcher:
            orchestrator = ScrapeOrchestrator(MovieExtractor(fetcher), ImageProcessor(fetcher), persist)
            return await orchestrator.run_batch(URLS[:1], 1)

    result = asyncio.run(scenario())

    assert result.success == 1
    assert stored == [None]


def test_downloaded_poster_is_passed_to_persist() -> None:
    stored: list[str | None] = []
    poster = _png()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith(".png"):
            return httpx.Response(200, content=poster)
        return httpx.Response(200, text=_detail_page("Poster Here", "https://cdn.example/here.png"))

    def persist(movie: MovieRecord, image_data: str | None, sitemap_id: int) -> None:
        stored.append(image_data)

    async def scenario(download_images: bool):
        async with _fetcher(handler) as fetcher:
            orchestrator = ScrapeOrchestrator(
                MovieExtractor(fetcher),
                ImageProcessor(fetcher),
                persist,
                download_images=download_images,
            )
            return await orchestrator.run_batch(URLS[:1], 1)

    asyncio.run(scenario(True))
    asyncio.run(scenario(False))

    assert stored[0] is not None and stored[0].startswith("data:image/jpeg;base64,")
    assert stored[1] is None


def test_persist_failure_counts_as_failed_item() -> None:
    def persist(movie: MovieRecord, image_data: str | None, sitemap_id: int) -> None:
        if movie.url == URLS[1]:
            raise RuntimeError("duplicate")

    async def scenario():
        async with _fetcher(_failing_third_url) as fetcher:
            orchestrator = ScrapeOrchestrator(MovieExtractor(fetcher), ImageProcessor(fetcher), persist)
            return await orchestrator.run_batch(URLS[:2], 1)

    result = asyncio.run(scenario())

    assert (result.success, result.failed) == (1, 1)


class ExplodingOrchestrator(ScrapeOrchestrator):
    async def process_url(self, url: str, sitemap_id: int) -> MovieRecord | None:
        if url == URLS[1]:
            raise RuntimeError("storage offline")
        return MovieRecord(title="Fine", url=url)


def test_unexpected_error_emits_error_snapshot_then_raises() -> None:
    snapshots: list[ScrapeProgress] = []

    async def scenario():
        orchestrator = ExplodingOrchestrator(None, None, lambda *args: None)  # type: ignore[arg-type]
        await orchestrator.run_batch(URLS, 1, snapshots.append)

    with pytest.raises(RuntimeError, match="storage offline"):
        asyncio.run(scenario())

    assert [snapshot.status for snapshot in snapshots] == ["running", "error"]
    assert snapshots[-1].current_url == URLS[1]
    assert snapshots[-1].completed == 1
