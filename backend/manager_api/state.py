"""Shared state container for the Reelharvest manager API."""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine

from .db import create_engine_from_settings, init_database
from .services.queue import JobQueueService
from .services.scraper import ScrapeService
from .settings import ManagerSettings
from .stores.extracted_movie_store import ExtractedMovieStore
from .stores.job_log_store import JobLogStore
from .stores.job_store import JobStore
from .stores.raw_movie_store import RawMovieStore
from .stores.sitemap_store import SitemapStore


@dataclass(slots=True)
class AppState:
    """Encapsulates stores and services shared across routers."""

    settings: ManagerSettings
    engine: Engine
    sitemap_store: SitemapStore
    extracted_movie_store: ExtractedMovieStore
    raw_movie_store: RawMovieStore
    job_store: JobStore
    job_log_store: JobLogStore
    job_queue: JobQueueService
    scrape_service: ScrapeService

    def __init__(self, settings: ManagerSettings) -> None:
        self.settings = settings
        self.engine = create_engine_from_settings(settings)
        init_database(self.engine)
        self.sitemap_store = SitemapStore(self.engine)
        self.extracted_movie_store = ExtractedMovieStore(self.engine)
        self.raw_movie_store = RawMovieStore(self.engine)
        self.job_store = JobStore(self.engine)
        self.job_log_store = JobLogStore(self.engine)
        self.job_queue = JobQueueService(settings)
        self.scrape_service = ScrapeService(
            settings,
            extracted_store=self.extracted_movie_store,
            raw_store=self.raw_movie_store,
        )
