"""
Sequential scrape batches with per-item isolation and progress snapshots.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import replace
from typing import Any, AsyncIterator, Callable, Optional, Sequence

from .extractor import MovieExtractor
from .images import ImageProcessor
from .records import BatchResult, MovieRecord, ScrapeProgress

logger = logging.getLogger(__name__)

# persist(record, image_data, sitemap_id); may be a plain function or a coroutine function.
PersistCallable = Callable[[MovieRecord, Optional[str], int], Any]
ProgressCallback = Callable[[ScrapeProgress], Any]


class BatchStream:
    """Async iterable of progress snapshots for one batch.

    ``result`` is populated once the stream has been fully consumed.
    """

    def __init__(self, orchestrator: "ScrapeOrchestrator", urls: Sequence[str], sitemap_id: int) -> None:
        self._orchestrator = orchestrator
        self._urls = urls
        self._sitemap_id = sitemap_id
        self._iterator: AsyncIterator[ScrapeProgress] | None = None
        self.result: BatchResult | None = None

    def __aiter__(self) -> AsyncIterator[ScrapeProgress]:
        if self._iterator is None:
            self._iterator = self._run()
        return self._iterator

    async def _run(self) -> AsyncIterator[ScrapeProgress]:
        orchestrator = self._orchestrator
        result = BatchResult()
        progress = ScrapeProgress(total=len(self._urls))

        logger.info("Starting scrape batch of %d URLs for sitemap %s", progress.total, self._sitemap_id)
        try:
            for url in self._urls:
                progress = replace(progress, current_url=url, status="running")
                movie = await orchestrator.process_url(url, self._sitemap_id)
                if movie is None:
                    result.failed += 1
                    progress = replace(progress, failed=progress.failed + 1)
                else:
                    result.success += 1
                    result.movies.append(movie)
                    progress = replace(progress, completed=progress.completed + 1)
                yield progress
        except Exception:
            logger.exception("Scrape batch for sitemap %s aborted", self._sitemap_id)
            yield replace(progress, status="error")
            raise

        self.result = result
        logger.info(
            "Scrape batch for sitemap %s finished: %d succeeded, %d failed",
            self._sitemap_id,
            result.success,
            result.failed,
        )
        yield replace(progress, current_url=None, status="completed")


class ScrapeOrchestrator:
    """Runs extraction, image processing and persistence for URL batches."""

    def __init__(
        self,
        extractor: MovieExtractor,
        images: ImageProcessor,
        persist: PersistCallable,
        *,
        download_images: bool = True,
    ) -> None:
        self.extractor = extractor
        self.images = images
        self.persist = persist
        self.download_images = download_images

    async def _persist(self, record: MovieRecord, image_data: str | None, sitemap_id: int) -> None:
        if inspect.iscoroutinefunction(self.persist):
            await self.persist(record, image_data, sitemap_id)
        else:
            await asyncio.to_thread(self.persist, record, image_data, sitemap_id)

    async def process_url(self, url: str, sitemap_id: int) -> MovieRecord | None:
        """Scrape and store a single URL; ``None`` means the item failed."""

        try:
            record = await self.extractor.extract_movie_details(url)
            if record is None:
                return None

            image_data = None
            if self.download_images and record.has_image:
                image_data = await self.images.process_image(record.image_url, record.title)

            await self._persist(record, image_data, sitemap_id)
        except Exception as exc:
            logger.error("Failed to process %s: %s", url, exc)
            return None

        logger.info("Stored %r from %s", record.title, url)
        return record

    def stream_batch(self, urls: Sequence[str], sitemap_id: int) -> BatchStream:
        return BatchStream(self, urls, sitemap_id)

    async def run_batch(
        self,
        urls: Sequence[str],
        sitemap_id: int,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Process ``urls`` one by one and return the aggregate result."""

        stream = self.stream_batch(urls, sitemap_id)
        async for snapshot in stream:
            if on_progress is not None:
                outcome = on_progress(snapshot)
                if inspect.isawaitable(outcome):
                    await outcome
        assert stream.result is not None
        return stream.result
