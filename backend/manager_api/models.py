"""Database models for the Reelharvest manager."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column, Text, UniqueConstraint
from sqlmodel import Field, SQLModel


class SitemapRecord(SQLModel, table=True):
    """A registered sitemap that seeds candidate movie URLs."""

    __tablename__ = "reelharvest_sitemaps"

    id: int | None = Field(default=None, primary_key=True)
    site_name: str = Field(max_length=255, index=True)
    url: str = Field(unique=True, index=True)
    status: str = Field(default="active", max_length=20, index=True)
    created_by: str | None = Field(default=None, max_length=255)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class ExtractedMovieRecord(SQLModel, table=True):
    """A candidate detail-page URL discovered in a sitemap."""

    __tablename__ = "reelharvest_extracted_movies"
    __table_args__ = (UniqueConstraint("url", "sitemap_id", name="uq_extracted_movie_url_sitemap"),)

    id: int | None = Field(default=None, primary_key=True)
    sitemap_id: int = Field(foreign_key="reelharvest_sitemaps.id", index=True)
    title: str = Field(max_length=500)
    url: str = Field(index=True)
    site_name: str = Field(max_length=255)
    status: str = Field(default="active", max_length=20, index=True)
    extracted_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class RawMovieRecord(SQLModel, table=True):
    """Metadata scraped from a movie detail page."""

    __tablename__ = "reelharvest_raw_movies"

    id: int | None = Field(default=None, primary_key=True)
    title: str = Field(max_length=255, index=True)
    url: str = Field(unique=True, index=True)
    description: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    image_url: str | None = Field(default=None)
    image_data: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    release_date: str | None = Field(default=None, max_length=50)
    genre: str | None = Field(default=None, max_length=100)
    rating: str | None = Field(default=None, max_length=50)
    duration: str | None = Field(default=None, max_length=50)
    director: str | None = Field(default=None, max_length=200)
    cast: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    quality: str | None = Field(default=None, max_length=50)
    size: str | None = Field(default=None, max_length=50)
    language: str | None = Field(default=None, max_length=100)
    scraped_from: int = Field(foreign_key="reelharvest_sitemaps.id", index=True)
    status: str = Field(default="active", max_length=20, index=True)
    scraped_at: datetime = Field(default_factory=datetime.utcnow, nullable=False, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class JobRecord(SQLModel, table=True):
    """Background job metadata persisted for orchestration."""

    __tablename__ = "reelharvest_jobs"

    id: str = Field(primary_key=True, index=True)
    type: str = Field(index=True)
    status: str = Field(default="queued", index=True)
    progress: float = Field(default=0.0)
    worker_id: str | None = Field(default=None, index=True)
    payload: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    result: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    started_at: datetime | None = Field(default=None, index=True)
    finished_at: datetime | None = Field(default=None, index=True)
    error_message: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class JobLogRecord(SQLModel, table=True):
    """Structured log event associated with a manager job."""

    __tablename__ = "reelharvest_job_logs"

    id: int | None = Field(default=None, primary_key=True)
    job_id: str = Field(index=True)
    level: str = Field(default="info", index=True)
    message: str
    context: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSON, nullable=True)
    )
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
