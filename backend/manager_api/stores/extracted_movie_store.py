"""Persistence for candidate movie URLs discovered in sitemaps."""
from __future__ import annotations

from datetime import datetime
from threading import Lock
from typing import Any, Iterable, Sequence

from sqlalchemy import case, delete, func
from sqlmodel import Session, select

from ..models import ExtractedMovieRecord
from ..schemas import ExtractedMovieModel, ExtractedMovieStatsModel


class ExtractedMovieStore:
    """Thread-safe access to ``reelharvest_extracted_movies``."""

    def __init__(self, engine) -> None:
        self._engine = engine
        self._lock = Lock()

    def create_batch(self, rows: Sequence[dict[str, Any]]) -> int:
        """Insert candidate rows, skipping ``(url, sitemap_id)`` duplicates.

        Returns the number of rows actually inserted.
        """

        if not rows:
            return 0

        inserted = 0
        with self._lock, Session(self._engine) as session:
            existing = _existing_keys(session, rows)
            for row in rows:
                key = (row["url"], row["sitemap_id"])
                if key in existing:
                    continue
                existing.add(key)
                session.add(ExtractedMovieRecord(**row))
                inserted += 1
            session.commit()
        return inserted

    def list(
        self,
        *,
        sitemap_id: int | None = None,
        status: str | None = None,
        limit: int | None = None,
    ) -> list[ExtractedMovieModel]:
        statement = select(ExtractedMovieRecord)
        if sitemap_id is not None:
            statement = statement.where(ExtractedMovieRecord.sitemap_id == sitemap_id)
        if status:
            statement = statement.where(ExtractedMovieRecord.status == status)
        statement = statement.order_by(ExtractedMovieRecord.id.asc())
        if limit is not None:
            statement = statement.limit(limit)
        with Session(self._engine) as session:
            records: Iterable[ExtractedMovieRecord] = session.exec(statement)
            return [_to_model(record) for record in records]

    def get(self, movie_id: int) -> ExtractedMovieModel | None:
        with Session(self._engine) as session:
            record = session.get(ExtractedMovieRecord, movie_id)
            return _to_model(record) if record else None

    def update_status(self, movie_id: int, status: str) -> ExtractedMovieModel | None:
        with self._lock, Session(self._engine) as session:
            record = session.get(ExtractedMovieRecord, movie_id)
            if record is None:
                return None
            record.status = status
            record.updated_at = datetime.utcnow()
            session.add(record)
            session.commit()
            session.refresh(record)
            return _to_model(record)

    def delete(self, movie_id: int) -> bool:
        with self._lock, Session(self._engine) as session:
            record = session.get(ExtractedMovieRecord, movie_id)
            if record is None:
                return False
            session.delete(record)
            session.commit()
            return True

    def delete_by_sitemap(self, sitemap_id: int) -> int:
        with self._lock, Session(self._engine) as session:
            result = session.exec(
                delete(ExtractedMovieRecord).where(ExtractedMovieRecord.sitemap_id == sitemap_id)
            )
            session.commit()
            return result.rowcount or 0

    def stats(self) -> ExtractedMovieStatsModel:
        statement = select(
            func.count(),
            func.count(case((ExtractedMovieRecord.status == "active", 1))),
            func.count(case((ExtractedMovieRecord.status == "processed", 1))),
            func.count(func.distinct(ExtractedMovieRecord.sitemap_id)),
            func.min(ExtractedMovieRecord.created_at),
            func.max(ExtractedMovieRecord.created_at),
        ).select_from(ExtractedMovieRecord)

        with Session(self._engine) as session:
            total, active, processed, sitemaps, first, last = session.exec(statement).one()

        return ExtractedMovieStatsModel(
            total_movies=total,
            active_movies=active,
            processed_movies=processed,
            total_sitemaps_with_movies=sitemaps,
            first_movie_date=first,
            last_movie_date=last,
        )


def _existing_keys(session: Session, rows: Sequence[dict[str, Any]]) -> set[tuple[str, int]]:
    sitemap_ids = {row["sitemap_id"] for row in rows}
    statement = select(ExtractedMovieRecord.url, ExtractedMovieRecord.sitemap_id).where(
        ExtractedMovieRecord.sitemap_id.in_(sitemap_ids)
    )
    return {(url, sitemap_id) for url, sitemap_id in session.exec(statement)}


def _to_model(record: ExtractedMovieRecord) -> ExtractedMovieModel:
    """Convert a database record into the API response model."""

    return ExtractedMovieModel(
        id=record.id,
        sitemap_id=record.sitemap_id,
        title=record.title,
        url=record.url,
        site_name=record.site_name,
        status=record.status,
        extracted_at=record.extracted_at,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )
