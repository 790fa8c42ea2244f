"""Tests for sitemap resolution and URL heuristics."""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import httpx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.harvester import (  # noqa: E402
    FetchController,
    ScraperConfig,
    SitemapCandidate,
    SitemapError,
    extract_title_from_url,
    is_movie_url,
    resolve_sitemap,
)
from backend.harvester.sitemap import to_candidate_rows  # noqa: E402

XML_SITEMAP = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://site.example/hindi-movie-2024-720p-hdrip/</loc></url>
  <url><loc>https://site.example/about-us/</loc></url>
</urlset>
"""

HTML_INDEX = """
<html><body>
  <a href="/movie/the-long-night-2021/">The Long Night</a>
  <a href="https://site.example/category/drama/">Drama</a>
  <a href="#top">Top</a>
  <a href="mailto:admin@site.example">Mail</a>
  <a href='/film/quiet-river-1080p-webrip.html'>Quiet River</a>
</body></html>
"""


def _run(coro):
    return asyncio.run(coro)


def _controller(handler) -> FetchController:
    async def no_sleep(_: float) -> None:
        return None

    config = ScraperConfig(rate_limit_interval=0, retry_delay=0)
    return FetchController(config, transport=httpx.MockTransport(handler), sleep=no_sleep)


async def _resolve(url: str, handler) -> list[SitemapCandidate]:
    async with _controller(handler) as fetcher:
        return await resolve_sitemap(url, fetcher=fetcher)


def test_xml_sitemap_keeps_movie_urls_with_clean_titles() -> None:
    """Movie entries should survive with year and quality tokens removed."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=XML_SITEMAP)

    candidates = _run(_resolve("https://site.example/sitemap.xml", handler))

    assert candidates == [
        SitemapCandidate(
            title="Hindi Movie",
            url="https://site.example/hindi-movie-2024-720p-hdrip/",
        )
    ]


def test_html_index_resolves_relative_links_against_page_url() -> None:
    """HTML listing pages are scanned for hrefs, skipping anchors and mailto links."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=HTML_INDEX)

    candidates = _run(_resolve("https://site.example/movies/", handler))

    assert [candidate.url for candidate in candidates] == [
        "https://site.example/movie/the-long-night-2021/",
        "https://site.example/film/quiet-river-1080p-webrip.html",
    ]
    assert [candidate.title for candidate in candidates] == ["The Long Night", "Quiet River"]


def test_sitemap_http_error_is_reported_as_sitemap_error() -> None:
    """Non-2xx responses surface the status code without retrying."""

    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(404)

    with pytest.raises(SitemapError, match="HTTP 404"):
        _run(_resolve("https://site.example/sitemap.xml", handler))
    assert len(calls) == 1


def test_sitemap_network_error_is_reported_as_sitemap_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(SitemapError, match="Failed to fetch sitemap"):
        _run(_resolve("https://site.example/sitemap.xml", handler))


def test_malformed_sitemap_url_is_reported_as_sitemap_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request should be sent")

    with pytest.raises(SitemapError, match="Invalid sitemap URL"):
        _run(_resolve("http://[::1/sitemap.xml", handler))


def test_empty_sitemap_returns_no_candidates() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text='<?xml version="1.0"?><urlset></urlset>')

    assert _run(_resolve("https://site.example/sitemap.xml", handler)) == []


@pytest.mark.parametrize(
    "url",
    [
        "https://site.example/movie/some-title/",
        "https://site.example/watch/abc",
        "https://site.example/some-film-2019/",
        "https://site.example/Bollywood-Hit",
    ],
)
def test_is_movie_url_accepts_movie_pages(url: str) -> None:
    assert is_movie_url(url) is True


@pytest.mark.parametrize(
    "url",
    [
        "https://site.example/about-us/",
        "https://site.example/category/hindi-movies/",
        "https://site.example/movie/poster.jpg",
        "https://site.example/feed/",
        "https://site.example/random-page/",
        "",
        None,
        42,
    ],
)
def test_is_movie_url_rejects_other_pages(url) -> None:
    """Skip patterns win over movie patterns and non-strings are rejected."""

    assert is_movie_url(url) is False


def test_extract_title_from_url_variants() -> None:
    assert extract_title_from_url("https://site.example/the_dark-knight-2008-1080p-bluray.html") == "The Dark Knight"
    assert extract_title_from_url("https://site.example/movie/inception/") == "Inception"
    assert extract_title_from_url("https://site.example/") == "Unknown Movie"
    assert extract_title_from_url("https://site.example/2020/") == "Unknown Movie"


def test_to_candidate_rows_shapes_store_rows() -> None:
    rows = to_candidate_rows(
        [SitemapCandidate(title="Inception", url="https://site.example/movie/inception/")],
        sitemap_id=7,
        site_name="Example",
    )

    assert rows == [
        {
            "sitemap_id": 7,
            "title": "Inception",
            "url": "https://site.example/movie/inception/",
            "site_name": "Example",
            "status": "active",
        }
    ]
