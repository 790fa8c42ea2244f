"""Service layer helpers for the scraping engine and job queue."""

from .queue import JobQueueError, JobQueueService
from .scraper import ScrapeService, ScrapeServiceError, SyncOutcome, create_fetch_controller

__all__ = [
    "JobQueueError",
    "JobQueueService",
    "ScrapeService",
    "ScrapeServiceError",
    "SyncOutcome",
    "create_fetch_controller",
]
