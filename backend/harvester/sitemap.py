"""
Sitemap resolution: discover candidate movie pages and guess their titles.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Iterable, List
from urllib.parse import urljoin, urlparse

import httpx

from .errors import SitemapError
from .fetcher import FetchController
from .records import UNKNOWN_TITLE, SitemapCandidate

logger = logging.getLogger(__name__)

SKIP_PATTERNS = (
    "/category/",
    "/tag/",
    "/author/",
    "/page/",
    "/search/",
    "/contact",
    "/about",
    "/privacy",
    "/terms",
    "/sitemap",
    ".xml",
    ".rss",
    ".feed",
    "/feed/",
    "/wp-",
    "/admin/",
    "/login",
    "/register",
    "/cart",
    "/checkout",
    "/account",
    ".jpg",
    ".png",
    ".gif",
    ".css",
    ".js",
    ".ico",
)

MOVIE_PATTERNS = (
    "/movie/",
    "/film/",
    "/watch/",
    "/download/",
    "/stream/",
    "hindi",
    "english",
    "bollywood",
    "hollywood",
    "dubbed",
    "720p",
    "1080p",
    "480p",
    "4k",
    "hdrip",
    "webrip",
    "bluray",
    "mkv",
    "mp4",
    "avi",
)

YEAR_RE = re.compile(r"\b(19|20)\d{2}\b")
LOC_RE = re.compile(r"<loc>(.*?)</loc>", re.IGNORECASE | re.DOTALL)
HREF_RE = re.compile(r"""href=["']([^"']*)["']""", re.IGNORECASE)
PAGE_EXTENSION_RE = re.compile(r"\.(html?|php|asp|jsp)$", re.IGNORECASE)
QUALITY_TOKEN_RE = re.compile(
    r"\b(720p|1080p|480p|4k|hdrip|webrip|bluray|dvdrip|camrip|hdcam)\b", re.IGNORECASE
)
TRAILING_YEAR_RE = re.compile(r"\s*\b(19|20)\d{2}\b\s*$")
WORD_START_RE = re.compile(r"\b\w")
IGNORED_LINK_PREFIXES = ("#", "mailto:", "javascript:", "tel:")


def is_movie_url(url: Any) -> bool:
    """Heuristically decide whether ``url`` points at a movie detail page."""

    if not url or not isinstance(url, str):
        return False

    lower_url = url.lower()
    if any(pattern in lower_url for pattern in SKIP_PATTERNS):
        return False

    if any(pattern in lower_url for pattern in MOVIE_PATTERNS):
        return True

    path_segments = [part for part in urlparse(url).path.split("/") if part]
    return bool(path_segments) and bool(YEAR_RE.search(url))


def extract_title_from_url(url: str) -> str:
    """Derive a readable title from the last path segment of ``url``."""

    try:
        path_parts = [part for part in urlparse(url).path.split("/") if part]
    except ValueError:
        return UNKNOWN_TITLE
    if not path_parts:
        return UNKNOWN_TITLE

    title = path_parts[-1]
    title = PAGE_EXTENSION_RE.sub("", title)
    title = re.sub(r"[-_]", " ", title)
    title = QUALITY_TOKEN_RE.sub("", title)
    title = TRAILING_YEAR_RE.sub("", title)
    title = re.sub(r"\s+", " ", title).strip()
    title = WORD_START_RE.sub(lambda match: match.group(0).upper(), title)
    return title or UNKNOWN_TITLE


def looks_like_xml(content: str) -> bool:
    return (
        content.lstrip().startswith("<?xml")
        or "<urlset" in content
        or "<sitemapindex" in content
    )


def parse_xml_sitemap(content: str) -> List[str]:
    return [match.strip() for match in LOC_RE.findall(content) if match.strip()]


def parse_html_links(content: str, base_url: str) -> List[str]:
    links: List[str] = []
    for raw in HREF_RE.findall(content):
        href = raw.strip()
        if not href or href.lower().startswith(IGNORED_LINK_PREFIXES):
            continue
        links.append(urljoin(base_url, href))
    return links


def classify_urls(urls: Iterable[str]) -> List[SitemapCandidate]:
    """Keep the movie-looking URLs, in order, paired with their derived titles."""

    candidates: List[SitemapCandidate] = []
    for url in urls:
        if is_movie_url(url):
            candidates.append(SitemapCandidate(title=extract_title_from_url(url), url=url))
    return candidates


def parse_sitemap_content(content: str, sitemap_url: str) -> List[SitemapCandidate]:
    if looks_like_xml(content):
        urls = parse_xml_sitemap(content)
        source = "XML sitemap"
    else:
        urls = parse_html_links(content, sitemap_url)
        source = "HTML page"
    candidates = classify_urls(urls)
    logger.info(
        "Found %d URLs in %s %s, %d look like movies",
        len(urls),
        source,
        sitemap_url,
        len(candidates),
    )
    return candidates


async def resolve_sitemap(
    sitemap_url: str,
    *,
    fetcher: FetchController | None = None,
) -> List[SitemapCandidate]:
    """Fetch ``sitemap_url`` and return the movie candidates it lists.

    A passed ``fetcher`` is reused so the request shares its rate limiter;
    otherwise a private controller is created for the single round-trip.
    """

    logger.info("Fetching sitemap %s", sitemap_url)
    try:
        if fetcher is not None:
            content = await fetcher.fetch_text(sitemap_url, attempts=1)
        else:
            async with FetchController() as private_fetcher:
                content = await private_fetcher.fetch_text(sitemap_url, attempts=1)
    except httpx.HTTPStatusError as exc:
        raise SitemapError(
            f"Failed to fetch sitemap: HTTP {exc.response.status_code}"
        ) from exc
    except httpx.HTTPError as exc:
        raise SitemapError(f"Failed to fetch sitemap: {exc}") from exc
    except httpx.InvalidURL as exc:
        raise SitemapError(f"Invalid sitemap URL: {exc}") from exc

    return parse_sitemap_content(content, sitemap_url)


def to_candidate_rows(
    candidates: Iterable[SitemapCandidate], sitemap_id: int, site_name: str
) -> List[dict[str, Any]]:
    """Shape resolver output into rows for the extracted-movie store."""

    return [
        {
            "sitemap_id": sitemap_id,
            "title": candidate.title,
            "url": candidate.url,
            "site_name": site_name,
            "status": "active",
        }
        for candidate in candidates
    ]
