"""Glue between the manager stores and the scraping engine."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

from backend.harvester import (
    BatchResult,
    FetchController,
    ImageProcessor,
    MovieExtractor,
    MovieRecord,
    ScrapeOrchestrator,
    SitemapError,
    resolve_sitemap,
)
from backend.harvester.orchestrator import ProgressCallback
from backend.harvester.sitemap import to_candidate_rows

from ..schemas import ExtractedMovieModel, RawMovieModel, SitemapModel
from ..settings import ManagerSettings
from ..stores.extracted_movie_store import ExtractedMovieStore
from ..stores.raw_movie_store import RawMovieStore

logger = logging.getLogger(__name__)

FetcherFactory = Callable[[ManagerSettings], FetchController]


def create_fetch_controller(settings: ManagerSettings) -> FetchController:
    """Build the HTTP controller used for one resolve or scrape run."""

    return FetchController(settings.scraper_config())


class ScrapeServiceError(RuntimeError):
    """Raised when a candidate cannot be scraped."""


@dataclass(slots=True)
class SyncOutcome:
    """Result of resolving a sitemap into stored candidates."""

    movie_count: int = 0
    inserted_count: int = 0
    parse_error: str | None = None


class ScrapeService:
    """Runs sitemap resolution and scraping against the manager stores.

    Public methods are synchronous so they can be called from FastAPI
    threadpool handlers and RQ workers; each call drives its own event loop
    and its own ``FetchController``.
    """

    def __init__(
        self,
        settings: ManagerSettings,
        *,
        extracted_store: ExtractedMovieStore,
        raw_store: RawMovieStore,
        fetcher_factory: FetcherFactory | None = None,
    ) -> None:
        self._settings = settings
        self._extracted = extracted_store
        self._raw = raw_store
        self._fetcher_factory = fetcher_factory

    def _fetcher(self) -> FetchController:
        factory = self._fetcher_factory or create_fetch_controller
        return factory(self._settings)

    def _download_images(self, override: bool | None) -> bool:
        return self._settings.download_images if override is None else override

    # ------------------------------------------------------------------
    # Sitemaps

    def resolve(self, sitemap: SitemapModel) -> SyncOutcome:
        """Resolve ``sitemap`` and store new candidates.

        Resolution failures are reported in ``parse_error`` rather than raised.
        """

        try:
            candidates = asyncio.run(self._resolve(sitemap.url))
        except SitemapError as exc:
            logger.warning("Failed to resolve sitemap %s: %s", sitemap.url, exc)
            return SyncOutcome(parse_error=str(exc))

        rows = to_candidate_rows(candidates, sitemap.id, sitemap.site_name)
        inserted = self._extracted.create_batch(rows)
        logger.info(
            "Sitemap %s yielded %d candidates (%d new)", sitemap.id, len(candidates), inserted
        )
        return SyncOutcome(movie_count=len(candidates), inserted_count=inserted)

    async def _resolve(self, url: str):
        async with self._fetcher() as fetcher:
            return await resolve_sitemap(url, fetcher=fetcher)

    # ------------------------------------------------------------------
    # Scraping

    def scrape_single(
        self, candidate: ExtractedMovieModel, *, download_images: bool | None = None
    ) -> RawMovieModel:
        """Scrape one candidate and store it, marking the candidate processed.

        Raises ``ScrapeServiceError`` when extraction fails; the candidate keeps
        its status in that case. Store errors propagate unchanged.
        """

        movie, image_data = asyncio.run(
            self._scrape_one(candidate.url, self._download_images(download_images))
        )
        if movie is None:
            raise ScrapeServiceError(f"Failed to scrape movie data from {candidate.url}")
        return self._raw.save_extracted(movie, image_data, candidate.sitemap_id)

    async def _scrape_one(
        self, url: str, download_images: bool
    ) -> tuple[MovieRecord | None, str | None]:
        async with self._fetcher() as fetcher:
            movie = await MovieExtractor(fetcher).extract_movie_details(url)
            if movie is None:
                return None, None
            image_data = None
            if download_images and movie.has_image:
                image_data = await ImageProcessor(fetcher).process_image(movie.image_url, movie.title)
            return movie, image_data

    def pending_urls(self, sitemap: SitemapModel, *, limit: int | None = None) -> list[str]:
        """Return active candidate URLs, resolving the sitemap when none are stored."""

        candidates = self._extracted.list(sitemap_id=sitemap.id, status="active", limit=limit)
        if not candidates:
            outcome = self.resolve(sitemap)
            if outcome.parse_error:
                raise SitemapError(outcome.parse_error)
            candidates = self._extracted.list(sitemap_id=sitemap.id, status="active", limit=limit)
        return [candidate.url for candidate in candidates]

    def run_batch(
        self,
        sitemap: SitemapModel,
        urls: list[str],
        *,
        download_images: bool | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Scrape ``urls`` sequentially, storing each movie as it completes."""

        return asyncio.run(
            self._run_batch(sitemap.id, urls, self._download_images(download_images), on_progress)
        )

    async def _run_batch(
        self,
        sitemap_id: int,
        urls: list[str],
        download_images: bool,
        on_progress: ProgressCallback | None,
    ) -> BatchResult:
        async with self._fetcher() as fetcher:
            orchestrator = ScrapeOrchestrator(
                MovieExtractor(fetcher),
                ImageProcessor(fetcher),
                self._raw.save_extracted,
                download_images=download_images,
            )
            return await orchestrator.run_batch(urls, sitemap_id, on_progress)
