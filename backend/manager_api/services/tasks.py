"""RQ task entrypoints executed by background workers."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from rq import get_current_job

from backend.harvester import ScrapeProgress

from ..db import create_engine_from_settings, init_database
from ..settings import ManagerSettings
from ..stores.extracted_movie_store import ExtractedMovieStore
from ..stores.job_log_store import JobLogStore
from ..stores.job_store import JobStateError, JobStore
from ..stores.raw_movie_store import RawMovieStore
from ..stores.sitemap_store import SitemapStore
from .scraper import ScrapeService

logger = logging.getLogger(__name__)

SCRAPE_BATCH = "scrape_batch"


def execute_manager_job(
    *,
    job_id: str,
    job_type: str,
    payload: dict[str, Any] | None,
    settings: dict[str, Any],
    worker_name: str,
) -> dict[str, Any] | None:
    """Background worker entrypoint for manager jobs."""

    resolved_settings = ManagerSettings.model_validate(settings)
    engine = create_engine_from_settings(resolved_settings)
    init_database(engine)
    job_store = JobStore(engine)
    log_store = JobLogStore(engine)

    current_job = get_current_job()  # pragma: no branch - helper for diagnostics
    worker_id = worker_name
    if current_job and getattr(current_job, "worker_name", None):  # pragma: no cover - runtime path
        worker_id = current_job.worker_name  # type: ignore[assignment]

    job_store.mark_running(job_id, worker_id=worker_id)
    log_store.log(job_id, "Job started")

    try:
        log_store.log(job_id, f"Executing {job_type} job", **({"payload": payload} if payload else {}))
        if job_type == SCRAPE_BATCH:
            result = _execute_scrape_batch(
                job_id, job_store, log_store, engine, resolved_settings, payload or {}
            )
        else:
            raise ValueError(f"Unknown job type: {job_type}")

        job_store.mark_completed(job_id, progress=1.0, result=result)
        log_store.log(job_id, "Job completed", **result)
        return result
    except Exception as exc:
        logger.exception("Job %s (%s) failed", job_id, job_type)
        current = job_store.get(job_id)
        try:
            job_store.mark_failed(
                job_id,
                error_message=str(exc),
                progress=current.progress if current else 0.0,
            )
        except JobStateError as state_exc:
            logger.warning("Could not mark job %s failed: %s", job_id, state_exc)
        log_store.log(job_id, "Job failed", level="error", error=str(exc))
        raise
    finally:
        engine.dispose()


def _execute_scrape_batch(
    job_id: str,
    job_store: JobStore,
    log_store: JobLogStore,
    engine,
    settings: ManagerSettings,
    payload: dict[str, Any],
) -> dict[str, Any]:
    """Scrape the active candidates of one sitemap."""

    sitemap_id = payload.get("sitemap_id")
    if sitemap_id is None:
        raise ValueError("Missing sitemap_id in payload")

    sitemap = SitemapStore(engine).get(int(sitemap_id))
    if sitemap is None:
        raise LookupError(f"Sitemap {sitemap_id} not found")

    service = ScrapeService(
        settings,
        extracted_store=ExtractedMovieStore(engine),
        raw_store=RawMovieStore(engine),
    )
    urls = service.pending_urls(sitemap, limit=payload.get("limit"))
    log_store.log(
        job_id,
        f"Scraping {len(urls)} URLs from {sitemap.site_name}",
        sitemap_id=sitemap.id,
        total=len(urls),
    )

    def record_progress(snapshot: ScrapeProgress) -> None:
        if snapshot.status == "running":
            job_store.update_progress(job_id, snapshot.fraction)
        log_store.log(
            job_id,
            f"Progress {snapshot.processed}/{snapshot.total}",
            level="debug",
            completed=snapshot.completed,
            failed=snapshot.failed,
            current_url=snapshot.current_url,
            status=snapshot.status,
        )

    async def on_progress(snapshot: ScrapeProgress) -> None:
        await asyncio.to_thread(record_progress, snapshot)

    result = service.run_batch(
        sitemap,
        urls,
        download_images=payload.get("download_images"),
        on_progress=on_progress,
    )
    return {
        "sitemap_id": sitemap.id,
        "total": len(urls),
        "success": result.success,
        "failed": result.failed,
        "titles": [movie.title for movie in result.movies],
    }
