"""Pydantic models exposed by the Reelharvest manager API."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

SitemapStatus = Literal["active", "inactive", "pending"]
MovieStatus = Literal["active", "inactive", "processed"]
JobStatus = Literal["queued", "running", "completed", "failed"]
LogLevel = Literal["debug", "info", "warning", "error"]


class ComponentHealth(BaseModel):
    """Reachability of one backing service."""

    status: Literal["ok", "error"] = Field(default="ok")
    detail: str | None = Field(
        default=None, description="Diagnostic code when the component is unavailable."
    )


class HealthStatus(BaseModel):
    """Service health payload."""

    status: Literal["ok"] = Field(default="ok")
    version: str = Field(default="0.1.0", description="Semantic version of the API service.")
    database: ComponentHealth = Field(default_factory=ComponentHealth)
    queue: ComponentHealth = Field(default_factory=ComponentHealth)


# ---------------------------------------------------------------------------
# Sitemaps


class SitemapCreate(BaseModel):
    """Payload accepted when registering a sitemap."""

    site_name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, description="Sitemap (XML) or listing page (HTML) URL.")
    status: SitemapStatus = Field(default="active")
    created_by: str | None = Field(
        default=None, max_length=255, description="Free-form reference to the creator."
    )


class SitemapUpdate(BaseModel):
    """Partial update for a sitemap."""

    site_name: str | None = Field(default=None, min_length=1, max_length=255)
    url: str | None = Field(default=None, min_length=1)
    status: SitemapStatus | None = Field(default=None)
    resync: bool = Field(
        default=False,
        description=(
            "Required when changing the URL: purges the sitemap's candidates and raw "
            "movies, then resolves the new URL."
        ),
    )


class SitemapModel(BaseModel):
    """Represents a persisted sitemap."""

    id: int
    site_name: str
    url: str
    status: SitemapStatus
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime


class SitemapStatsModel(BaseModel):
    """Aggregate counters for registered sitemaps."""

    total_sitemaps: int = 0
    active_sitemaps: int = 0
    inactive_sitemaps: int = 0
    pending_sitemaps: int = 0
    created_today: int = 0


class SitemapListModel(BaseModel):
    items: list[SitemapModel]
    stats: SitemapStatsModel


class SitemapSyncResponse(BaseModel):
    """Result of creating, re-syncing or re-resolving a sitemap."""

    sitemap: SitemapModel
    movie_count: int = Field(
        default=0, description="Number of movie candidates found in the sitemap."
    )
    inserted_count: int = Field(
        default=0, description="Number of candidates newly stored (duplicates are skipped)."
    )
    parse_error: str | None = Field(
        default=None, description="Resolution failure, reported without failing the request."
    )


# ---------------------------------------------------------------------------
# Extracted candidates


class ExtractedMovieModel(BaseModel):
    """A candidate movie URL discovered in a sitemap."""

    id: int
    sitemap_id: int
    title: str
    url: str
    site_name: str
    status: MovieStatus
    extracted_at: datetime
    created_at: datetime
    updated_at: datetime


class ExtractedMovieStatsModel(BaseModel):
    total_movies: int = 0
    active_movies: int = 0
    processed_movies: int = 0
    total_sitemaps_with_movies: int = 0
    first_movie_date: datetime | None = None
    last_movie_date: datetime | None = None


class ExtractedMovieListModel(BaseModel):
    items: list[ExtractedMovieModel]
    stats: ExtractedMovieStatsModel | None = None


class ExtractedMovieStatusUpdate(BaseModel):
    status: MovieStatus


class BulkDeleteRequest(BaseModel):
    ids: list[int] = Field(..., min_length=1, description="Candidate identifiers to delete.")


class BulkDeleteResponse(BaseModel):
    deleted: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Raw movies


class RawMovieModel(BaseModel):
    """Scraped movie metadata."""

    id: int
    title: str
    url: str
    description: str | None = None
    image_url: str | None = None
    image_data: str | None = None
    release_date: str | None = None
    genre: str | None = None
    rating: str | None = None
    duration: str | None = None
    director: str | None = None
    cast: str | None = None
    quality: str | None = None
    size: str | None = None
    language: str | None = None
    scraped_from: int
    sitemap_name: str | None = Field(
        default=None, description="Site name of the sitemap the movie was scraped from."
    )
    status: MovieStatus
    scraped_at: datetime
    created_at: datetime
    updated_at: datetime


class RawMovieUpdate(BaseModel):
    """Editable raw movie fields; omitted fields are left untouched."""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    image_url: str | None = None
    release_date: str | None = Field(default=None, max_length=50)
    genre: str | None = Field(default=None, max_length=100)
    rating: str | None = Field(default=None, max_length=50)
    duration: str | None = Field(default=None, max_length=50)
    director: str | None = Field(default=None, max_length=200)
    cast: str | None = None
    quality: str | None = Field(default=None, max_length=50)
    size: str | None = Field(default=None, max_length=50)
    language: str | None = Field(default=None, max_length=100)
    status: MovieStatus | None = None


class RawMovieStatsModel(BaseModel):
    total_movies: int = 0
    active_movies: int = 0
    inactive_movies: int = 0
    processed_movies: int = 0
    scraped_today: int = 0


class RawMovieListModel(BaseModel):
    items: list[RawMovieModel]
    stats: RawMovieStatsModel


# ---------------------------------------------------------------------------
# Scraper


class ScrapeRunRequest(BaseModel):
    """Payload used to enqueue a background scrape batch."""

    sitemap_id: int = Field(..., ge=1)
    limit: int | None = Field(
        default=None, ge=1, description="Maximum number of active candidates to scrape."
    )
    download_images: bool | None = Field(
        default=None, description="Override the configured poster download behaviour."
    )


class ScrapeSingleRequest(BaseModel):
    """Payload used to scrape one candidate inline."""

    extracted_movie_id: int = Field(..., ge=1)
    download_images: bool | None = Field(default=None)


class ScrapeProgressModel(BaseModel):
    total: int
    completed: int
    failed: int
    current_url: str | None = None
    status: Literal["idle", "running", "completed", "error"]


# ---------------------------------------------------------------------------
# Jobs


class JobModel(BaseModel):
    """Represents a background scrape job."""

    id: str
    type: str
    status: JobStatus
    progress: float = Field(ge=0, le=1)
    worker_id: str | None = Field(
        default=None, description="Identifier for the worker processing the job."
    )
    payload: dict[str, Any] | None = Field(
        default=None, description="Optional JSON payload forwarded to the runner."
    )
    result: dict[str, Any] | None = Field(
        default=None, description="Outcome summary recorded when the job finishes."
    )
    created_at: datetime = Field(
        description="Timestamp when the job record was created."
    )
    updated_at: datetime = Field(
        description="Timestamp when the job record was last updated."
    )
    started_at: datetime | None = None
    finished_at: datetime | None = None
    error_message: str | None = None
    duration_seconds: float | None = Field(
        default=None,
        description="Execution duration calculated from started and finished timestamps.",
    )


class JobMetricsModel(BaseModel):
    """Aggregate statistics for background job processing."""

    total: int = Field(description="Total number of job records persisted in the store.")
    status_counts: dict[str, int] = Field(
        default_factory=dict,
        description="Count of jobs grouped by current status.",
    )
    type_counts: dict[str, int] = Field(
        default_factory=dict,
        description="Count of jobs grouped by job type identifier.",
    )
    average_duration_seconds: float | None = Field(
        default=None,
        description="Average duration in seconds for completed jobs when both start and finish timestamps are recorded.",
    )
    last_finished_at: datetime | None = Field(
        default=None,
        description="Timestamp of the most recently finished job regardless of outcome.",
    )
    queue_depth: int = Field(
        default=0,
        description="Number of jobs currently waiting in the Redis queue.",
    )


class JobLogCreate(BaseModel):
    """Payload used to append a new job log entry."""

    level: LogLevel = Field(
        default="info", description="Severity level of the log entry."
    )
    message: str = Field(..., description="Human-readable log message.")
    context: dict[str, Any] | None = Field(
        default=None,
        description="Optional structured context payload for the log entry.",
    )


class JobLogModel(JobLogCreate):
    """Represents a persisted job log entry."""

    id: int
    job_id: str
    created_at: datetime
