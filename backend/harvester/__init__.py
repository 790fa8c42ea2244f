"""
Scraping engine for Reelharvest.

The package resolves sitemaps into candidate movie URLs, extracts movie
metadata from static HTML pages, and drives rate-limited scrape batches.
"""
from .errors import ExtractionError, HarvesterError, SitemapError
from .extractor import MovieExtractor
from .fetcher import FetchController, RateLimiter, ScraperConfig
from .images import ImageProcessor
from .orchestrator import BatchStream, ScrapeOrchestrator
from .records import BatchResult, MovieRecord, ScrapeProgress, SitemapCandidate
from .sitemap import extract_title_from_url, is_movie_url, resolve_sitemap

__all__ = [
    "BatchResult",
    "BatchStream",
    "ExtractionError",
    "FetchController",
    "HarvesterError",
    "ImageProcessor",
    "MovieExtractor",
    "MovieRecord",
    "RateLimiter",
    "ScrapeOrchestrator",
    "ScrapeProgress",
    "ScraperConfig",
    "SitemapCandidate",
    "SitemapError",
    "extract_title_from_url",
    "is_movie_url",
    "resolve_sitemap",
]
