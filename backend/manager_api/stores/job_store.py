"""Persistence for background scrape jobs and their lifecycle."""
from __future__ import annotations

from datetime import datetime
from threading import Lock
from typing import Any, Iterable
from uuid import uuid4

from sqlalchemy import func
from sqlmodel import Session, select

from ..models import JobRecord
from ..schemas import JobMetricsModel, JobModel

# Allowed status moves; a job never leaves a terminal state.
TRANSITIONS: dict[str, set[str]] = {
    "queued": {"running", "failed"},
    "running": {"running", "completed", "failed"},
    "completed": set(),
    "failed": set(),
}


class JobStateError(RuntimeError):
    """Raised for unknown jobs or status moves outside ``TRANSITIONS``."""


class JobStore:
    """Thread-safe access to ``reelharvest_jobs``."""

    def __init__(self, engine) -> None:
        self._engine = engine
        self._lock = Lock()

    def enqueue(self, job_type: str, payload: dict[str, Any] | None = None) -> JobModel:
        """Create a queued job entry."""

        record = JobRecord(id=uuid4().hex, type=job_type, status="queued", payload=payload)
        with self._lock, Session(self._engine) as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            return _to_model(record)

    def list(
        self,
        *,
        limit: int = 50,
        statuses: list[str] | None = None,
        job_type: str | None = None,
        sitemap_id: int | None = None,
    ) -> list[JobModel]:
        """Return the newest jobs first, optionally filtered by status, type and sitemap."""

        statement = select(JobRecord)
        wanted = {status.lower() for status in statuses or [] if status}
        if wanted:
            statement = statement.where(JobRecord.status.in_(sorted(wanted)))
        if job_type:
            statement = statement.where(JobRecord.type == job_type)
        if sitemap_id is not None:
            statement = statement.where(JobRecord.payload["sitemap_id"].as_integer() == sitemap_id)
        statement = statement.order_by(JobRecord.created_at.desc()).limit(limit)

        with Session(self._engine) as session:
            records: Iterable[JobRecord] = session.exec(statement)
            return [_to_model(record) for record in records]

    def get(self, job_id: str) -> JobModel | None:
        with Session(self._engine) as session:
            record = session.get(JobRecord, job_id)
            return _to_model(record) if record else None

    def mark_running(self, job_id: str, *, worker_id: str | None = None) -> JobModel:
        now = datetime.utcnow()
        return self._transition(job_id, "running", started_at=now, worker_id=worker_id, progress=0.0)

    def update_progress(self, job_id: str, progress: float) -> JobModel:
        """Record batch progress; the stored fraction never moves backwards."""

        return self._transition(job_id, "running", progress=min(max(progress, 0.0), 1.0))

    def mark_completed(
        self,
        job_id: str,
        *,
        progress: float = 1.0,
        result: dict[str, Any] | None = None,
    ) -> JobModel:
        return self._transition(
            job_id,
            "completed",
            progress=progress,
            finished_at=datetime.utcnow(),
            result=result,
        )

    def mark_failed(self, job_id: str, *, error_message: str, progress: float | None = None) -> JobModel:
        return self._transition(
            job_id,
            "failed",
            progress=progress,
            finished_at=datetime.utcnow(),
            error_message=error_message,
        )

    def _transition(self, job_id: str, status: str, **changes: Any) -> JobModel:
        with self._lock, Session(self._engine) as session:
            record = session.get(JobRecord, job_id)
            if record is None:
                raise JobStateError(f"Job {job_id} not found")
            if status not in TRANSITIONS.get(record.status, set()):
                raise JobStateError(f"Job {job_id} cannot move from {record.status} to {status}")

            progress = changes.pop("progress", None)
            if progress is not None:
                record.progress = max(record.progress, progress) if status == "running" else progress
            started_at = changes.pop("started_at", None)
            if started_at is not None and record.started_at is None:
                record.started_at = started_at
            for name, value in changes.items():
                if value is not None:
                    setattr(record, name, value)

            record.status = status
            record.updated_at = datetime.utcnow()
            session.add(record)
            session.commit()
            session.refresh(record)
            return _to_model(record)

    def metrics(self) -> JobMetricsModel:
        """Aggregate job counts, average run time and the latest finish."""

        with Session(self._engine) as session:
            total = session.exec(select(func.count()).select_from(JobRecord)).one()
            status_counts = _grouped_counts(session, JobRecord.status)
            type_counts = _grouped_counts(session, JobRecord.type)
            finished = session.exec(
                select(JobRecord.started_at, JobRecord.finished_at).where(
                    JobRecord.finished_at.is_not(None)
                )
            ).all()

        durations = [
            (finished_at - started_at).total_seconds()
            for started_at, finished_at in finished
            if started_at is not None
        ]
        return JobMetricsModel(
            total=total,
            status_counts=status_counts,
            type_counts=type_counts,
            average_duration_seconds=sum(durations) / len(durations) if durations else None,
            last_finished_at=max((finished_at for _, finished_at in finished), default=None),
        )


def _grouped_counts(session: Session, column) -> dict[str, int]:
    rows = session.exec(select(column, func.count()).group_by(column).order_by(column)).all()
    return {key: count for key, count in rows}


def _to_model(record: JobRecord) -> JobModel:
    duration_seconds = None
    if record.started_at and record.finished_at:
        duration_seconds = (record.finished_at - record.started_at).total_seconds()

    return JobModel(
        id=record.id,
        type=record.type,
        status=record.status,
        progress=record.progress,
        worker_id=record.worker_id,
        payload=record.payload,
        result=record.result,
        created_at=record.created_at,
        updated_at=record.updated_at,
        started_at=record.started_at,
        finished_at=record.finished_at,
        error_message=record.error_message,
        duration_seconds=duration_seconds,
    )
