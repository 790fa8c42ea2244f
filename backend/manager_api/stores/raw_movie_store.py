"""Persistence for scraped movie metadata."""
from __future__ import annotations

from datetime import datetime, time
from threading import Lock
from typing import Any

from sqlalchemy import case, delete, func
from sqlmodel import Session, select

from backend.harvester.records import MovieRecord

from ..models import ExtractedMovieRecord, RawMovieRecord, SitemapRecord
from ..schemas import RawMovieModel, RawMovieStatsModel

RAW_MOVIE_FIELDS = (
    "title",
    "description",
    "image_url",
    "release_date",
    "genre",
    "rating",
    "duration",
    "director",
    "cast",
    "quality",
    "size",
    "language",
)


class RawMovieStore:
    """Thread-safe access to ``reelharvest_raw_movies``."""

    def __init__(self, engine) -> None:
        self._engine = engine
        self._lock = Lock()

    def create(
        self,
        movie: MovieRecord,
        *,
        sitemap_id: int,
        image_data: str | None = None,
    ) -> RawMovieModel:
        """Insert a raw movie; a duplicate URL raises ``IntegrityError``."""

        with self._lock, Session(self._engine) as session:
            _require_sitemap(session, sitemap_id)
            record = _from_movie(movie, sitemap_id, image_data)
            session.add(record)
            session.commit()
            session.refresh(record)
            return self._to_model(session, record)

    def save_extracted(
        self,
        movie: MovieRecord,
        image_data: str | None,
        sitemap_id: int,
    ) -> RawMovieModel:
        """Insert ``movie`` and mark its originating candidate processed.

        Both writes share one transaction, so a failed insert leaves the
        candidate untouched.
        """

        with self._lock, Session(self._engine) as session:
            _require_sitemap(session, sitemap_id)
            record = _from_movie(movie, sitemap_id, image_data)
            session.add(record)

            candidates = session.exec(
                select(ExtractedMovieRecord)
                .where(ExtractedMovieRecord.url == movie.url)
                .where(ExtractedMovieRecord.sitemap_id == sitemap_id)
            ).all()
            now = datetime.utcnow()
            for candidate in candidates:
                candidate.status = "processed"
                candidate.updated_at = now
                session.add(candidate)

            session.commit()
            session.refresh(record)
            return self._to_model(session, record)

    def list(
        self,
        *,
        sitemap_id: int | None = None,
        status: str | None = None,
        limit: int | None = None,
    ) -> list[RawMovieModel]:
        statement = select(RawMovieRecord, SitemapRecord.site_name).join(
            SitemapRecord, SitemapRecord.id == RawMovieRecord.scraped_from, isouter=True
        )
        if sitemap_id is not None:
            statement = statement.where(RawMovieRecord.scraped_from == sitemap_id)
        if status:
            statement = statement.where(RawMovieRecord.status == status)
        statement = statement.order_by(RawMovieRecord.scraped_at.desc(), RawMovieRecord.id.desc())
        if limit is not None:
            statement = statement.limit(limit)
        with Session(self._engine) as session:
            rows = session.exec(statement).all()
            return [_to_model(record, site_name) for record, site_name in rows]

    def get(self, movie_id: int) -> RawMovieModel | None:
        with Session(self._engine) as session:
            record = session.get(RawMovieRecord, movie_id)
            return self._to_model(session, record) if record else None

    def update(self, movie_id: int, changes: dict[str, Any]) -> RawMovieModel | None:
        """Apply editable field changes; unknown keys are ignored."""

        with self._lock, Session(self._engine) as session:
            record = session.get(RawMovieRecord, movie_id)
            if record is None:
                return None
            for name, value in changes.items():
                if name in RAW_MOVIE_FIELDS or name == "status":
                    setattr(record, name, value)
            record.updated_at = datetime.utcnow()
            session.add(record)
            session.commit()
            session.refresh(record)
            return self._to_model(session, record)

    def delete(self, movie_id: int) -> bool:
        with self._lock, Session(self._engine) as session:
            record = session.get(RawMovieRecord, movie_id)
            if record is None:
                return False
            session.delete(record)
            session.commit()
            return True

    def delete_by_sitemap(self, sitemap_id: int) -> int:
        with self._lock, Session(self._engine) as session:
            result = session.exec(
                delete(RawMovieRecord).where(RawMovieRecord.scraped_from == sitemap_id)
            )
            session.commit()
            return result.rowcount or 0

    def stats(self) -> RawMovieStatsModel:
        today = datetime.combine(datetime.utcnow().date(), time.min)

        def _count_status(value: str):
            return func.count(case((RawMovieRecord.status == value, 1)))

        statement = select(
            func.count(),
            _count_status("active"),
            _count_status("inactive"),
            _count_status("processed"),
            func.count(case((RawMovieRecord.scraped_at >= today, 1))),
        ).select_from(RawMovieRecord)

        with Session(self._engine) as session:
            total, active, inactive, processed, scraped_today = session.exec(statement).one()

        return RawMovieStatsModel(
            total_movies=total,
            active_movies=active,
            inactive_movies=inactive,
            processed_movies=processed,
            scraped_today=scraped_today,
        )

    @staticmethod
    def _to_model(session: Session, record: RawMovieRecord) -> RawMovieModel:
        sitemap = session.get(SitemapRecord, record.scraped_from)
        return _to_model(record, sitemap.site_name if sitemap else None)


def _require_sitemap(session: Session, sitemap_id: int) -> None:
    if session.get(SitemapRecord, sitemap_id) is None:
        raise ValueError(f"Sitemap {sitemap_id} does not exist")


def _from_movie(movie: MovieRecord, sitemap_id: int, image_data: str | None) -> RawMovieRecord:
    values = {name: getattr(movie, name) for name in RAW_MOVIE_FIELDS}
    return RawMovieRecord(
        url=movie.url,
        image_data=image_data,
        scraped_from=sitemap_id,
        status=movie.status,
        **values,
    )


def _to_model(record: RawMovieRecord, sitemap_name: str | None) -> RawMovieModel:
    """Convert a database record into the API response model."""

    return RawMovieModel(
        id=record.id,
        title=record.title,
        url=record.url,
        description=record.description,
        image_url=record.image_url,
        image_data=record.image_data,
        release_date=record.release_date,
        genre=record.genre,
        rating=record.rating,
        duration=record.duration,
        director=record.director,
        cast=record.cast,
        quality=record.quality,
        size=record.size,
        language=record.language,
        scraped_from=record.scraped_from,
        sitemap_name=sitemap_name,
        status=record.status,
        scraped_at=record.scraped_at,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )
