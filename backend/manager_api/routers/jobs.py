"""Endpoints for inspecting background scrape jobs."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from ..dependencies import get_job_log_store, get_job_queue, get_job_store
from ..schemas import JobLogCreate, JobLogModel, JobMetricsModel, JobModel, JobStatus, LogLevel
from ..services.queue import JobQueueService
from ..stores.job_log_store import JobLogStore
from ..stores.job_store import JobStore

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _require_job(store: JobStore, job_id: str) -> JobModel:
    job = store.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.get("", response_model=list[JobModel])
def list_jobs(
    limit: int = Query(default=50, ge=1, le=100),
    statuses: Annotated[
        list[JobStatus] | None,
        Query(alias="status", description="Repeat to match several statuses."),
    ] = None,
    job_type: str | None = Query(default=None, alias="type", description="e.g. scrape_batch"),
    sitemap_id: int | None = Query(
        default=None, description="Only jobs whose payload targets this sitemap."
    ),
    store: JobStore = Depends(get_job_store),
) -> list[JobModel]:
    """Newest jobs first."""

    return store.list(limit=limit, statuses=statuses, job_type=job_type, sitemap_id=sitemap_id)


@router.get("/metrics", response_model=JobMetricsModel)
def job_metrics(
    store: JobStore = Depends(get_job_store),
    queue: JobQueueService = Depends(get_job_queue),
) -> JobMetricsModel:
    """Job counts and run times from the job table plus the live RQ backlog."""

    return store.metrics().model_copy(update={"queue_depth": queue.depth()})


@router.get("/{job_id}", response_model=JobModel)
def get_job(job_id: str, store: JobStore = Depends(get_job_store)) -> JobModel:
    return _require_job(store, job_id)


@router.get("/{job_id}/logs", response_model=list[JobLogModel])
def list_job_logs(
    job_id: str,
    limit: int = Query(default=100, ge=1, le=1000),
    level: LogLevel | None = Query(default=None),
    store: JobStore = Depends(get_job_store),
    log_store: JobLogStore = Depends(get_job_log_store),
) -> list[JobLogModel]:
    """Log lines of a job, oldest first; batches log one ``debug`` line per snapshot."""

    _require_job(store, job_id)
    return log_store.list_for_job(job_id, limit=limit, level=level)


@router.post("/{job_id}/logs", response_model=JobLogModel, status_code=201)
def append_job_log(
    job_id: str,
    payload: JobLogCreate,
    store: JobStore = Depends(get_job_store),
    log_store: JobLogStore = Depends(get_job_log_store),
) -> JobLogModel:
    """Attach an operator note to a job, e.g. why a failed batch was re-run."""

    _require_job(store, job_id)
    return log_store.append(job_id, payload)
