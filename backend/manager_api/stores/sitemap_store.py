"""Database-backed store for registered sitemaps."""
from __future__ import annotations

from datetime import datetime, time
from threading import Lock
from typing import Iterable

from sqlalchemy import case, delete, func
from sqlmodel import Session, select

from ..models import ExtractedMovieRecord, RawMovieRecord, SitemapRecord
from ..schemas import SitemapCreate, SitemapModel, SitemapStatsModel


class SitemapStore:
    """Thread-safe CRUD interface for sitemaps.

    Deleting a sitemap removes its candidates and raw movies in the same
    transaction.
    """

    def __init__(self, engine) -> None:
        self._engine = engine
        self._lock = Lock()

    def create(self, payload: SitemapCreate) -> SitemapModel:
        """Persist a new sitemap; a duplicate URL raises ``IntegrityError``."""

        record = SitemapRecord(
            site_name=payload.site_name,
            url=payload.url,
            status=payload.status,
            created_by=payload.created_by,
        )
        with self._lock, Session(self._engine) as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            return _to_model(record)

    def list(self, *, status: str | None = None) -> list[SitemapModel]:
        statement = select(SitemapRecord)
        if status:
            statement = statement.where(SitemapRecord.status == status)
        statement = statement.order_by(SitemapRecord.created_at.desc(), SitemapRecord.id.desc())
        with Session(self._engine) as session:
            records: Iterable[SitemapRecord] = session.exec(statement)
            return [_to_model(record) for record in records]

    def get(self, sitemap_id: int) -> SitemapModel | None:
        with Session(self._engine) as session:
            record = session.get(SitemapRecord, sitemap_id)
            return _to_model(record) if record else None

    def update(
        self,
        sitemap_id: int,
        *,
        site_name: str | None = None,
        url: str | None = None,
        status: str | None = None,
        purge: bool = False,
    ) -> SitemapModel | None:
        """Apply the given changes and return the updated sitemap.

        With ``purge`` the sitemap's candidates and raw movies are removed in
        the same transaction as the update.
        """

        with self._lock, Session(self._engine) as session:
            record = session.get(SitemapRecord, sitemap_id)
            if record is None:
                return None

            if site_name is not None:
                record.site_name = site_name
            if url is not None:
                record.url = url
            if status is not None:
                record.status = status
            record.updated_at = datetime.utcnow()

            if purge:
                _purge_children(session, sitemap_id)

            session.add(record)
            session.commit()
            session.refresh(record)
            return _to_model(record)

    def delete(self, sitemap_id: int) -> bool:
        with self._lock, Session(self._engine) as session:
            record = session.get(SitemapRecord, sitemap_id)
            if record is None:
                return False
            _purge_children(session, sitemap_id)
            session.delete(record)
            session.commit()
            return True

    def stats(self) -> SitemapStatsModel:
        today = datetime.combine(datetime.utcnow().date(), time.min)

        def _count_status(value: str):
            return func.count(case((SitemapRecord.status == value, 1)))

        statement = select(
            func.count(),
            _count_status("active"),
            _count_status("inactive"),
            _count_status("pending"),
            func.count(case((SitemapRecord.created_at >= today, 1))),
        ).select_from(SitemapRecord)

        with Session(self._engine) as session:
            total, active, inactive, pending, created_today = session.exec(statement).one()

        return SitemapStatsModel(
            total_sitemaps=total,
            active_sitemaps=active,
            inactive_sitemaps=inactive,
            pending_sitemaps=pending,
            created_today=created_today,
        )


def _purge_children(session: Session, sitemap_id: int) -> None:
    session.exec(delete(ExtractedMovieRecord).where(ExtractedMovieRecord.sitemap_id == sitemap_id))
    session.exec(delete(RawMovieRecord).where(RawMovieRecord.scraped_from == sitemap_id))


def _to_model(record: SitemapRecord) -> SitemapModel:
    """Convert a SitemapRecord into the public response model."""

    return SitemapModel(
        id=record.id,
        site_name=record.site_name,
        url=record.url,
        status=record.status,
        created_by=record.created_by,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )
