"""Exception types raised by the scraping engine."""
from __future__ import annotations


class HarvesterError(RuntimeError):
    """Base class for engine failures surfaced to callers."""


class SitemapError(HarvesterError):
    """Raised when a sitemap cannot be fetched or decoded."""


class ExtractionError(HarvesterError):
    """Raised when a fetched page does not yield a usable movie record."""
