"""FastAPI service exposing sitemaps, candidates, scraped movies and scrape jobs."""
from .app import create_app

__all__ = ["create_app"]
