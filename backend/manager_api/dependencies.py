"""FastAPI dependencies for the Reelharvest manager API."""
from fastapi import Depends, Request

from .services.queue import JobQueueService
from .services.scraper import ScrapeService
from .state import AppState
from .stores.extracted_movie_store import ExtractedMovieStore
from .stores.job_log_store import JobLogStore
from .stores.job_store import JobStore
from .stores.raw_movie_store import RawMovieStore
from .stores.sitemap_store import SitemapStore


def get_app_state(request: Request) -> AppState:
    """Resolve the shared application state from the FastAPI request."""
    return request.app.state.app_state


def get_sitemap_store(app_state: AppState = Depends(get_app_state)) -> SitemapStore:
    return app_state.sitemap_store


def get_extracted_movie_store(
    app_state: AppState = Depends(get_app_state),
) -> ExtractedMovieStore:
    return app_state.extracted_movie_store


def get_raw_movie_store(app_state: AppState = Depends(get_app_state)) -> RawMovieStore:
    return app_state.raw_movie_store


def get_job_store(app_state: AppState = Depends(get_app_state)) -> JobStore:
    return app_state.job_store


def get_job_log_store(app_state: AppState = Depends(get_app_state)) -> JobLogStore:
    return app_state.job_log_store


def get_job_queue(app_state: AppState = Depends(get_app_state)) -> JobQueueService:
    """Return the Redis-backed queue service."""
    return app_state.job_queue


def get_scrape_service(app_state: AppState = Depends(get_app_state)) -> ScrapeService:
    """Return the service that drives the scraping engine."""
    return app_state.scrape_service
