"""
Movie field extraction from static HTML detail pages.

Every field is resolved by an ordered tuple of strategies. A strategy takes a
parsed ``PageDocument`` and returns a string or ``None``; the first non-empty
answer wins and a failing strategy simply hands over to the next one. When
nothing matches the field falls back to a fixed placeholder.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from .errors import ExtractionError
from .fetcher import FetchController
from .records import (
    DEFAULT_LANGUAGE,
    NO_DESCRIPTION,
    NOT_EXTRACTED,
    PLACEHOLDER_IMAGE_URL,
    UNKNOWN,
    UNKNOWN_TITLE,
    MovieRecord,
)

logger = logging.getLogger(__name__)

Strategy = Callable[["PageDocument"], Optional[str]]

HIDDEN_TAGS = ("script", "style", "noscript", "template")
MOVIE_TYPES = ("Movie", "VideoObject", "TVSeries", "TVEpisode", "CreativeWork")
# Site furniture that shares property names with movies (name, image, ...).
IGNORED_TYPES = {
    "WebSite",
    "Organization",
    "BreadcrumbList",
    "ListItem",
    "SearchAction",
    "ImageObject",
    "Person",
}
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".svg")
TITLE_SUFFIX_RE = re.compile(r"\s+[|–-]\s+[^|–-]*$")
LABEL_PREFIX_RE = re.compile(
    r"(?:Release Dates?|Released|Date|Year|Genres?|Categor(?:y|ies)|Type|Ratings?|Scores?|IMDb|"
    r"Rated|Durations?|Runtimes?|Lengths?|Directors?|Directed by|Cast|Stars?|Starring|Actors?|"
    r"Quality|Size|Languages?)\s*:",
    re.IGNORECASE,
)
DROPDOWN_ARTIFACTS =("â–¾", "▾")
ISO_DURATION_RE = re.compile(
    r"^P(?:T)?(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?$",
    re.IGNORECASE,
)


@dataclass
class PageDocument:
    """A fetched page prepared for the extraction strategies."""

    url: str
    soup: BeautifulSoup
    text: str
    structured: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def parse(cls, html: str, url: str) -> "PageDocument":
        soup = BeautifulSoup(html, "lxml")
        return cls(
            url=url,
            soup=soup,
            text=_visible_text(soup),
            structured=_structured_nodes(soup),
        )

    def meta(self, *, prop: str | None = None, name: str | None = None) -> str | None:
        attrs = {"property": prop} if prop else {"name": name}
        tag = self.soup.find("meta", attrs=attrs)
        if tag is None:
            return None
        content = tag.get("content")
        return content.strip() if isinstance(content, str) and content.strip() else None

    def structured_value(self, *keys: str) -> Any:
        """Return the first non-empty value of ``keys`` across the JSON-LD nodes."""

        for node in self.structured:
            for key in keys:
                value = node.get(key)
                if value not in (None, "", [], {}):
                    return value
        return None

    def search(self, patterns: Sequence[re.Pattern[str]], *, min_length: int = 1) -> str | None:
        """Return group 1 of the first pattern that matches the visible text.

        A captured value that is itself another ``Label:`` belongs to the next
        line of the page and is skipped.
        """

        for pattern in patterns:
            for match in pattern.finditer(self.text):
                value = _strip_trailing_separators(match.group(1))
                if LABEL_PREFIX_RE.match(value):
                    continue
                if len(value) >= min_length:
                    return value
        return None

    def select_text(
        self,
        selectors: Iterable[str],
        accept: Callable[[str], bool] = lambda text: len(text) > 2,
    ) -> str | None:
        """Return the text of the first selector match that ``accept`` approves."""

        for selector in selectors:
            for element in self.soup.select(selector):
                if element.name in HIDDEN_TAGS:
                    continue
                text = element.get_text(" ", strip=True)
                if text and accept(text):
                    return text
        return None

    def resolve_image(self, candidate: Any) -> str | None:
        if not isinstance(candidate, str) or not candidate.strip():
            return None
        candidate = candidate.strip()
        if candidate.startswith("data:image/"):
            return candidate
        resolved = urljoin(self.url, candidate)
        return resolved if is_valid_image_url(resolved) else None


def _visible_text(soup: BeautifulSoup) -> str:
    body = soup.body or soup
    lines: List[str] = []
    for string in body.find_all(string=True):
        if string.parent is not None and string.parent.name in HIDDEN_TAGS:
            continue
        stripped = string.strip()
        if stripped:
            lines.append(stripped)
    return "\n".join(lines)


def _flatten_structured(payload: Any) -> Iterable[Dict[str, Any]]:
    if isinstance(payload, list):
        for item in payload:
            yield from _flatten_structured(item)
    elif isinstance(payload, dict):
        graph = payload.get("@graph")
        if isinstance(graph, list):
            yield from _flatten_structured(graph)
        yield payload


def _node_types(node: Dict[str, Any]) -> List[str]:
    raw = node.get("@type")
    if isinstance(raw, list):
        return [str(item) for item in raw]
    return [str(raw)] if raw else []


def _structured_nodes(soup: BeautifulSoup) -> List[Dict[str, Any]]:
    nodes: List[Dict[str, Any]] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            payload = json.loads(raw)
        except ValueError:
            logger.debug("Skipping malformed JSON-LD block")
            continue
        for node in _flatten_structured(payload):
            types = _node_types(node)
            if types and all(node_type in IGNORED_TYPES for node_type in types):
                continue
            nodes.append(node)
    # Movie-like nodes answer first.
    nodes.sort(key=lambda node: not any(t in MOVIE_TYPES for t in _node_types(node)))
    return nodes


def _strip_trailing_separators(value: str) -> str:
    return re.sub(r"[,\s]+$", "", value.strip())


def _names(value: Any) -> str | None:
    """Flatten a JSON-LD person reference (dict, list or string) into names."""

    items = value if isinstance(value, list) else [value]
    names: List[str] = []
    for item in items:
        if isinstance(item, dict):
            name = item.get("name")
        else:
            name = item
        if isinstance(name, str) and name.strip():
            names.append(name.strip())
    return ", ".join(names) or None


def is_valid_image_url(url: str) -> bool:
    """Accept absolute http(s) image URLs with a known extension or data URIs."""

    if not url:
        return False
    if url.startswith("data:image/"):
        return True
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return False
    return parsed.path.lower().endswith(IMAGE_EXTENSIONS)


def clean_genre(genre: str) -> str:
    if not genre or genre == UNKNOWN:
        return UNKNOWN
    cleaned = genre.strip()
    for artifact in DROPDOWN_ARTIFACTS:
        if cleaned.startswith(artifact):
            cleaned = cleaned[len(artifact):]
    cleaned = re.sub(r"([a-z])([A-Z])", r"\1, \2", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    return cleaned or UNKNOWN


def format_iso_duration(value: str) -> str:
    match = ISO_DURATION_RE.match(value.strip())
    if not match or not any(match.groupdict().values()):
        return value.strip()
    hours = int(match.group("hours") or 0)
    minutes = int(match.group("minutes") or 0)
    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    return f"{minutes}m"


def run_strategies(doc: PageDocument, strategies: Sequence[Strategy], fallback: str) -> str:
    """Evaluate ``strategies`` in order and return the first non-empty value."""

    for strategy in strategies:
        try:
            value = strategy(doc)
        except Exception as exc:  # markup is arbitrary; a broken strategy just yields
            logger.debug("Strategy %s failed: %s", strategy.__name__, exc)
            continue
        if value is None:
            continue
        value = str(value).strip()
        if value:
            return value
    return fallback


def _compile(*patterns: str, flags: int = re.IGNORECASE) -> Tuple[re.Pattern[str], ...]:
    return tuple(re.compile(pattern, flags) for pattern in patterns)


# --------------------------------------------------------------------------
# title

def title_from_structured(doc: PageDocument) -> str | None:
    value = doc.structured_value("name", "headline")
    return value if isinstance(value, str) else None


def title_from_meta(doc: PageDocument) -> str | None:
    return doc.meta(prop="og:title") or doc.meta(name="twitter:title")


def title_from_title_tag(doc: PageDocument) -> str | None:
    if doc.soup.title is None:
        return None
    return TITLE_SUFFIX_RE.sub("", doc.soup.title.get_text(strip=True)).strip()


def title_from_heading(doc: PageDocument) -> str | None:
    heading = doc.soup.find("h1")
    return heading.get_text(" ", strip=True) if heading else None


# --------------------------------------------------------------------------
# description

STORY_SELECTORS = (
    ".story",
    ".plot",
    ".synopsis",
    ".description",
    '[class*="story"]',
    '[class*="plot"]',
    '[class*="synopsis"]',
)


def description_from_structured(doc: PageDocument) -> str | None:
    value = doc.structured_value("description")
    return value if isinstance(value, str) else None


def description_from_meta(doc: PageDocument) -> str | None:
    for value in (doc.meta(prop="og:description"), doc.meta(name="description")):
        if value and len(value) > 20:
            return value
    return None


def description_from_selectors(doc: PageDocument) -> str | None:
    return doc.select_text(STORY_SELECTORS, accept=lambda text: len(text) > 50)


def description_from_paragraphs(doc: PageDocument) -> str | None:
    return doc.select_text(("p",), accept=lambda text: len(text) > 50)


# --------------------------------------------------------------------------
# image

POSTER_SELECTORS = (
    ".poster img",
    ".thumbnail img",
    ".movie-poster img",
    ".cover img",
    ".featured-image img",
    '[class*="poster"] img',
    '[class*="thumbnail"] img',
    '[class*="cover"] img',
)


def image_from_structured(doc: PageDocument) -> str | None:
    image = doc.structured_value("image", "thumbnailUrl")
    if isinstance(image, list):
        image = image[0] if image else None
    if isinstance(image, dict):
        image = image.get("url") or image.get("contentUrl")
    return doc.resolve_image(image)


def image_from_meta(doc: PageDocument) -> str | None:
    return doc.resolve_image(doc.meta(prop="og:image")) or doc.resolve_image(
        doc.meta(name="twitter:image")
    )


def _img_source(img) -> Any:
    return img.get("src") or img.get("data-src")


def image_from_selectors(doc: PageDocument) -> str | None:
    for selector in POSTER_SELECTORS:
        for img in doc.soup.select(selector):
            resolved = doc.resolve_image(_img_source(img))
            if resolved:
                return resolved
    return None


def image_from_any_img(doc: PageDocument) -> str | None:
    for img in doc.soup.find_all("img"):
        alt = (img.get("alt") or "").lower()
        classes = img.get("class") or []
        class_name = " ".join(classes).lower() if isinstance(classes, list) else str(classes).lower()
        if "logo" in alt or "logo" in class_name:
            continue
        resolved = doc.resolve_image(_img_source(img))
        if resolved:
            return resolved
    return None


# --------------------------------------------------------------------------
# release date

RELEASE_DATE_PATTERNS = _compile(
    r"Release Dates?:\s*([^\n\r|]+)",
    r"Released[:\s]+([^\n\r|]+)",
    r"\bDate[:\s]+([^\n\r|]+)",
    r"\bYear[:\s]+(\d{4})",
    r"\b(\d{1,2}[/-]\d{1,2}[/-]\d{4})\b",
    r"\b(\d{4}[/-]\d{1,2}[/-]\d{1,2})\b",
    r"\b((?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\s+\d{1,2},?\s+\d{4})",
    r"\b(\d{1,2}\s+(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\s+\d{4})",
)
DATE_SELECTORS = (
    ".release-date",
    ".date",
    ".year",
    '[class*="release"]',
    '[class*="date"]',
)
DATE_TEXT_RE = re.compile(r"\d{4}|\d{1,2}[/-]\d{1,2}")


def release_date_from_structured(doc: PageDocument) -> str | None:
    value = doc.structured_value("datePublished", "releaseDate", "dateCreated")
    return value if isinstance(value, str) else None


def release_date_from_text(doc: PageDocument) -> str | None:
    return doc.search(RELEASE_DATE_PATTERNS, min_length=4)


def release_date_from_selectors(doc: PageDocument) -> str | None:
    return doc.select_text(DATE_SELECTORS, accept=lambda text: bool(DATE_TEXT_RE.search(text)))


# --------------------------------------------------------------------------
# genre

GENRE_PATTERNS = _compile(
    r"Genres?:\s*([^\n\r|]+)",
    r"Categor(?:y|ies):\s*([^\n\r|]+)",
    r"\bType:\s*([^\n\r|]+)",
)
GENRE_SELECTORS = (
    ".genre",
    ".category",
    ".tags",
    '[class*="genre"]',
    '[class*="category"]',
    '[id*="genre"]',
)


def genre_from_structured(doc: PageDocument) -> str | None:
    value = doc.structured_value("genre")
    if isinstance(value, list):
        return ", ".join(str(item).strip() for item in value if str(item).strip())
    return value if isinstance(value, str) else None


def genre_from_text(doc: PageDocument) -> str | None:
    return doc.search(GENRE_PATTERNS, min_length=3)


def genre_from_selectors(doc: PageDocument) -> str | None:
    return doc.select_text(GENRE_SELECTORS)


# --------------------------------------------------------------------------
# rating

RATING_PATTERNS = _compile(
    r"Ratings?:\s*([^\n\r|]+)",
    r"IMDb[\s:]+(\d+(?:\.\d+)?(?:\s*/\s*10)?)",
    r"Scores?:\s*([^\n\r|]+)",
    r"\b(\d+\.\d+\s*/\s*10)",
    r"\b(\d+\.\d+)\s*stars?",
    r"\bRated[:\s]+(PG-13|NC-17|PG|G|R)\b",
)
RATING_SELECTORS = (
    ".rating",
    ".score",
    ".imdb-rating",
    '[class*="rating"]',
    '[class*="score"]',
)


def rating_from_structured(doc: PageDocument) -> str | None:
    aggregate = doc.structured_value("aggregateRating")
    if isinstance(aggregate, dict) and aggregate.get("ratingValue") not in (None, ""):
        best = aggregate.get("bestRating") or 10
        return f"{aggregate['ratingValue']}/{best}"
    content_rating = doc.structured_value("contentRating")
    return content_rating if isinstance(content_rating, str) else None


def rating_from_text(doc: PageDocument) -> str | None:
    return doc.search(RATING_PATTERNS)


def rating_from_selectors(doc: PageDocument) -> str | None:
    return doc.select_text(RATING_SELECTORS, accept=lambda text: bool(re.search(r"\d", text)))


# --------------------------------------------------------------------------
# duration

DURATION_LABEL_PATTERNS = _compile(
    r"Durations?:\s*([^\n\r|]+)",
    r"Runtimes?:\s*([^\n\r|]+)",
    r"Lengths?:\s*([^\n\r|]+)",
)
HOURS_MINUTES_RE = re.compile(r"\b(\d+)\s*h(?:ours?|rs?)?\s*(\d+)\s*m(?:in(?:utes?|s)?)?\b", re.IGNORECASE)
MINUTES_RE = re.compile(r"\b(\d+)\s*(?:min(?:ute)?s?)\b", re.IGNORECASE)
CLOCK_HOURS_RE = re.compile(r"\b(\d+:\d+)\s*(?:h|hours?)\b", re.IGNORECASE)
DURATION_SELECTORS = (
    ".duration",
    ".runtime",
    ".length",
    '[class*="duration"]',
    '[class*="runtime"]',
)
DURATION_TEXT_RE = re.compile(r"\d+\s*[hm]|\d+:\d+", re.IGNORECASE)


def duration_from_structured(doc: PageDocument) -> str | None:
    value = doc.structured_value("duration")
    return format_iso_duration(value) if isinstance(value, str) else None


def duration_from_text(doc: PageDocument) -> str | None:
    labelled = doc.search(DURATION_LABEL_PATTERNS)
    if labelled:
        return labelled
    match = HOURS_MINUTES_RE.search(doc.text)
    if match:
        return f"{match.group(1)}h {match.group(2)}m"
    for pattern in (MINUTES_RE, CLOCK_HOURS_RE):
        match = pattern.search(doc.text)
        if match:
            return match.group(0).strip()
    return None


def duration_from_selectors(doc: PageDocument) -> str | None:
    return doc.select_text(DURATION_SELECTORS, accept=lambda text: bool(DURATION_TEXT_RE.search(text)))


# --------------------------------------------------------------------------
# people

DIRECTOR_PATTERNS = _compile(
    r"Directors?:\s*([^\n\r|]+)",
    r"Directed by:?\s*([^\n\r|]+)",
)
CAST_PATTERNS = _compile(
    r"Cast:\s*([^\n\r|]+)",
    r"Stars?:\s*([^\n\r|]+)",
    r"Starring:\s*([^\n\r|]+)",
    r"Actors?:\s*([^\n\r|]+)",
)
CAST_SELECTORS = (
    ".cast",
    ".actors",
    ".stars",
    '[class*="cast"]',
    '[class*="actor"]',
)


def director_from_structured(doc: PageDocument) -> str | None:
    return _names(doc.structured_value("director"))


def director_from_text(doc: PageDocument) -> str | None:
    return doc.search(DIRECTOR_PATTERNS, min_length=3)


def cast_from_structured(doc: PageDocument) -> str | None:
    return _names(doc.structured_value("actor", "actors"))


def cast_from_text(doc: PageDocument) -> str | None:
    return doc.search(CAST_PATTERNS, min_length=3)


def cast_from_selectors(doc: PageDocument) -> str | None:
    return doc.select_text(CAST_SELECTORS)


# --------------------------------------------------------------------------
# release details

QUALITY_PATTERNS = _compile(r"Quality:\s*([^\n\r]+)")
QUALITY_SELECTORS = (".quality", '[class*="quality"]')
SIZE_PATTERNS = _compile(r"Size:\s*([^\n\r]+)")
LANGUAGE_PATTERNS = _compile(r"Languages?:\s*([^\n\r]+)")


def quality_from_text(doc: PageDocument) -> str | None:
    return doc.search(QUALITY_PATTERNS)


def quality_from_selectors(doc: PageDocument) -> str | None:
    return doc.select_text(QUALITY_SELECTORS, accept=lambda text: len(text) > 1)


def size_from_text(doc: PageDocument) -> str | None:
    return doc.search(SIZE_PATTERNS)


def language_from_text(doc: PageDocument) -> str | None:
    return doc.search(LANGUAGE_PATTERNS)


FIELD_STRATEGIES: Dict[str, Tuple[Tuple[Strategy, ...], str]] = {
    "title": (
        (title_from_structured, title_from_meta, title_from_title_tag, title_from_heading),
        UNKNOWN_TITLE,
    ),
    "description": (
        (
            description_from_structured,
            description_from_meta,
            description_from_selectors,
            description_from_paragraphs,
        ),
        NO_DESCRIPTION,
    ),
    "image_url": (
        (image_from_structured, image_from_meta, image_from_selectors, image_from_any_img),
        PLACEHOLDER_IMAGE_URL,
    ),
    "release_date": (
        (release_date_from_structured, release_date_from_text, release_date_from_selectors),
        UNKNOWN,
    ),
    "genre": ((genre_from_structured, genre_from_text, genre_from_selectors), UNKNOWN),
    "rating": ((rating_from_structured, rating_from_text, rating_from_selectors), UNKNOWN),
    "duration": (
        (duration_from_structured, duration_from_text, duration_from_selectors),
        UNKNOWN,
    ),
    "director": ((director_from_structured, director_from_text), UNKNOWN),
    "cast": ((cast_from_structured, cast_from_text, cast_from_selectors), UNKNOWN),
    "quality": ((quality_from_text, quality_from_selectors), NOT_EXTRACTED),
    "size": ((size_from_text,), NOT_EXTRACTED),
    "language": ((language_from_text,), DEFAULT_LANGUAGE),
}


def extract_from_html(html: str, url: str) -> MovieRecord:
    """Parse one detail page into a truncated ``MovieRecord``.

    Raises ``ExtractionError`` when the page is empty, has no body, or no
    title could be determined.
    """

    if not html or not html.strip():
        raise ExtractionError("Empty HTML content received")

    doc = PageDocument.parse(html, url)
    if doc.soup.body is None:
        raise ExtractionError("Invalid HTML structure - no body element found")

    values = {
        name: run_strategies(doc, strategies, fallback)
        for name, (strategies, fallback) in FIELD_STRATEGIES.items()
    }
    values["genre"] = clean_genre(values["genre"])

    record = MovieRecord(url=url, **values).truncated()
    if not record.title or record.title == UNKNOWN_TITLE:
        raise ExtractionError("Failed to extract movie title - possibly invalid page")
    return record


class MovieExtractor:
    """Fetches detail pages and turns them into movie records."""

    def __init__(self, fetcher: FetchController) -> None:
        self.fetcher = fetcher

    @property
    def attempts(self) -> int:
        return max(self.fetcher.config.extraction_attempts, 1)

    def extract_from_html(self, html: str, url: str) -> MovieRecord:
        return extract_from_html(html, url)

    async def extract_movie_details(self, url: str) -> MovieRecord | None:
        """Fetch and extract ``url``, retrying with exponential backoff.

        Returns ``None`` once the attempt budget is exhausted.
        """

        last_error: Exception | None = None
        for attempt in range(1, self.attempts + 1):
            logger.info("Extracting %s (attempt %d/%d)", url, attempt, self.attempts)
            try:
                html = await self.fetcher.fetch_text(url)
                record = self.extract_from_html(html, url)
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "Extraction failed for %s (attempt %d/%d): %s",
                    url,
                    attempt,
                    self.attempts,
                    exc,
                )
                if attempt < self.attempts:
                    await self.fetcher.sleep(self.fetcher.backoff_delay(attempt))
                continue

            logger.info(
                "Extracted %r from %s (genre=%s, rating=%s, image=%s)",
                record.title,
                url,
                record.genre,
                record.rating,
                record.has_image,
            )
            return record

        logger.error("Failed to extract %s after %d attempts: %s", url, self.attempts, last_error)
        return None
