"""Runtime configuration for the Reelharvest manager."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from backend.harvester.fetcher import DEFAULT_USER_AGENT, ScraperConfig


class ManagerSettings(BaseSettings):
    """Environment-aware settings for the manager service, worker and CLI."""

    database_url: str = Field(
        default="sqlite:///./data/reelharvest.db",
        description="Connection URL for the manager SQLite database.",
    )
    database_echo: bool = Field(
        default=False, description="Enable SQL echo for debugging queries."
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Connection URL for the Redis-backed job queue.",
    )
    redis_queue_name: str = Field(
        default="reelharvest",
        description="RQ queue name used for scrape jobs.",
    )
    queue_worker_name: str = Field(
        default="reelharvest-worker",
        description="Identifier used when reporting job worker executions.",
    )
    rate_limit_interval: float = Field(
        default=2.0, ge=0, description="Minimum seconds between outbound requests."
    )
    fetch_attempts: int = Field(
        default=3, ge=1, description="Total attempts per page request before giving up."
    )
    retry_delay: float = Field(
        default=5.0, ge=0, description="Fixed delay in seconds between request retries."
    )
    request_timeout: float = Field(
        default=30.0, gt=0, description="Per-request timeout in seconds."
    )
    extraction_attempts: int = Field(
        default=3, ge=1, description="Fetch-and-parse attempts per movie URL."
    )
    backoff_base: float = Field(
        default=1.0, ge=0, description="Initial backoff in seconds between extraction attempts."
    )
    backoff_cap: float = Field(
        default=5.0, ge=0, description="Upper bound in seconds for the extraction backoff."
    )
    image_width: int = Field(default=300, ge=1)
    image_height: int = Field(default=450, ge=1)
    image_quality: int = Field(default=80, ge=1, le=95)
    user_agent: str = Field(default=DEFAULT_USER_AGENT)
    download_images: bool = Field(
        default=True, description="Download and inline poster images while scraping."
    )

    model_config = SettingsConfigDict(
        env_prefix="REELHARVEST_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    def scraper_config(self) -> ScraperConfig:
        """Build the scraping engine configuration from these settings."""

        return ScraperConfig(
            rate_limit_interval=self.rate_limit_interval,
            fetch_attempts=self.fetch_attempts,
            retry_delay=self.retry_delay,
            request_timeout=self.request_timeout,
            extraction_attempts=self.extraction_attempts,
            backoff_base=self.backoff_base,
            backoff_cap=self.backoff_cap,
            image_width=self.image_width,
            image_height=self.image_height,
            image_quality=self.image_quality,
            user_agent=self.user_agent,
        )
