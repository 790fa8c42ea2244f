"""Router exports for the Reelharvest manager API."""
from . import extracted_movies, health, jobs, raw_movies, scraper, sitemaps

__all__ = ["extracted_movies", "health", "jobs", "raw_movies", "scraper", "sitemaps"]
