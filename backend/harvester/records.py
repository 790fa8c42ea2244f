"""Value types shared by the scraping engine."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Literal

UNKNOWN = "Unknown"
NOT_EXTRACTED = "Not extracted"
UNKNOWN_TITLE = "Unknown Movie"
NO_DESCRIPTION = "No description available"
DEFAULT_LANGUAGE = "Hindi"
PLACEHOLDER_IMAGE_URL = "https://via.placeholder.com/300x450?text=No+Image"

# Column widths of the raw movie table; values are cut before persistence.
FIELD_LIMITS: dict[str, int] = {
    "title": 255,
    "release_date": 50,
    "genre": 100,
    "rating": 50,
    "duration": 50,
    "director": 200,
    "quality": 50,
    "size": 50,
    "language": 100,
}

TRUNCATION_MARKER = "..."

ProgressStatus = Literal["idle", "running", "completed", "error"]


def truncate_text(text: str, limit: int) -> str:
    """Cut ``text`` to at most ``limit`` characters, marking the cut with ``...``."""

    if not text or len(text) <= limit:
        return text
    if limit <= len(TRUNCATION_MARKER):
        return text[:limit]
    return text[: limit - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


@dataclass(slots=True, frozen=True)
class SitemapCandidate:
    """A URL discovered in a sitemap along with a title guessed from the URL."""

    title: str
    url: str


@dataclass(slots=True)
class MovieRecord:
    """Structured result of extracting one movie detail page."""

    title: str
    url: str
    description: str = NO_DESCRIPTION
    image_url: str = PLACEHOLDER_IMAGE_URL
    release_date: str = UNKNOWN
    genre: str = UNKNOWN
    rating: str = UNKNOWN
    duration: str = UNKNOWN
    director: str = UNKNOWN
    cast: str = UNKNOWN
    quality: str = NOT_EXTRACTED
    size: str = NOT_EXTRACTED
    language: str = DEFAULT_LANGUAGE
    status: str = "active"

    @property
    def has_image(self) -> bool:
        return bool(self.image_url) and self.image_url != PLACEHOLDER_IMAGE_URL

    def truncated(self) -> "MovieRecord":
        """Return a copy with every bounded field cut to its column width."""

        updates = {
            name: truncate_text(getattr(self, name), limit)
            for name, limit in FIELD_LIMITS.items()
        }
        return replace(self, **updates)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class ScrapeProgress:
    """Immutable snapshot of a running scrape batch."""

    total: int
    completed: int = 0
    failed: int = 0
    current_url: str | None = None
    status: ProgressStatus = "idle"

    @property
    def processed(self) -> int:
        return self.completed + self.failed

    @property
    def fraction(self) -> float:
        if self.total <= 0:
            return 1.0 if self.status == "completed" else 0.0
        return min(self.processed / self.total, 1.0)


@dataclass(slots=True)
class BatchResult:
    """Aggregate outcome of a scrape batch."""

    success: int = 0
    failed: int = 0
    movies: list[MovieRecord] = field(default_factory=list)
