"""RQ queue that carries scrape batches to the background worker."""
from __future__ import annotations

import logging
from typing import Any

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue

try:  # pragma: no cover - optional dependency for test environments
    import fakeredis
except ModuleNotFoundError:  # pragma: no cover - runtime path without fakeredis
    fakeredis = None  # type: ignore[assignment]

from ..schemas import JobModel
from ..settings import ManagerSettings
from ..stores.job_log_store import JobLogStore
from ..stores.job_store import JobStore
from .tasks import execute_manager_job

logger = logging.getLogger(__name__)

# Batches are sequential and rate limited; allow long runs.
JOB_TIMEOUT_SECONDS = 6 * 60 * 60
# Finished RQ jobs only need to outlive a worker restart; the job table is the record.
RESULT_TTL_SECONDS = 24 * 60 * 60


class JobQueueError(RuntimeError):
    """Raised when the queue cannot accept a job."""


def connect(redis_url: str) -> Redis:
    """Open a Redis connection; ``fakeredis://`` gives an in-process server."""

    if redis_url.startswith("fakeredis://"):
        if fakeredis is None:  # pragma: no cover - safety branch
            raise JobQueueError("fakeredis is required for fakeredis:// URLs")
        return fakeredis.FakeRedis()  # type: ignore[return-value]
    return Redis.from_url(redis_url)


class JobQueueService:
    """Records jobs in the job table and hands them to RQ."""

    def __init__(self, settings: ManagerSettings) -> None:
        self._settings = settings
        self._connection = connect(settings.redis_url)
        self._queue = Queue(settings.redis_queue_name, connection=self._connection)

    @property
    def queue(self) -> Queue:
        return self._queue

    @property
    def connection(self) -> Redis:
        return self._connection

    def ping(self) -> bool:
        try:
            return bool(self._connection.ping())
        except RedisError:
            return False

    def depth(self) -> int:
        """Number of jobs waiting in the queue; 0 when Redis is unreachable."""

        try:
            return len(self._queue)
        except RedisError:
            return 0

    def enqueue(
        self,
        job_store: JobStore,
        log_store: JobLogStore,
        job_type: str,
        payload: dict[str, Any] | None = None,
    ) -> JobModel:
        """Persist a job and enqueue it for the worker.

        Jobs are not retried by RQ; a failed batch is re-run by enqueueing it
        again, which only picks up candidates that are still active.
        """

        job = job_store.enqueue(job_type, payload)
        log_store.log(job.id, f"Job {job_type} enqueued", **({"payload": payload} if payload else {}))

        try:
            self._queue.enqueue_call(
                func=execute_manager_job,
                kwargs={
                    "job_id": job.id,
                    "job_type": job_type,
                    "payload": payload,
                    "settings": self._settings.model_dump(),
                    "worker_name": self._settings.queue_worker_name,
                },
                timeout=JOB_TIMEOUT_SECONDS,
                result_ttl=RESULT_TTL_SECONDS,
                job_id=job.id,
                description=f"{job_type} {payload or {}}",
            )
        except RedisError as exc:
            logger.error("Could not enqueue job %s: %s", job.id, exc)
            log_store.log(job.id, "Failed to enqueue job", level="error", error=str(exc))
            job_store.mark_failed(job.id, error_message="queue_unavailable", progress=0.0)
            raise JobQueueError("Unable to enqueue job") from exc

        return job
