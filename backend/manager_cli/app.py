"""Command line interface for the Reelharvest manager API."""
from __future__ import annotations

import asyncio
import json
from typing import Any, List, Optional

import httpx
import typer

from backend.harvester import FetchController, MovieExtractor, resolve_sitemap
from backend.harvester.errors import HarvesterError
from backend.manager_api.settings import ManagerSettings

from .client import create_client


DEFAULT_API_BASE = "http://localhost:8000"

app = typer.Typer(help="Interact with the Reelharvest manager service.")
sitemaps_app = typer.Typer(help="Register and resolve sitemaps.")
app.add_typer(sitemaps_app, name="sitemaps")
urls_app = typer.Typer(help="Browse candidate movie URLs found in sitemaps.")
app.add_typer(urls_app, name="urls")
movies_app = typer.Typer(help="Browse scraped movie metadata.")
app.add_typer(movies_app, name="movies")
scrape_app = typer.Typer(help="Start scrape runs.")
app.add_typer(scrape_app, name="scrape")
jobs_app = typer.Typer(help="Inspect background scrape jobs.")
app.add_typer(jobs_app, name="jobs")
probe_app = typer.Typer(help="Run the scraping engine locally without the service.")
app.add_typer(probe_app, name="probe")


JOB_STATUS_CHOICES = {"queued", "running", "completed", "failed"}
SITEMAP_STATUS_CHOICES = {"active", "inactive", "pending"}
MOVIE_STATUS_CHOICES = {"active", "inactive", "processed"}


def _api_base_option() -> typer.Option:
    return typer.Option(
        DEFAULT_API_BASE,
        "--api-base",
        help="Base URL for the manager API service.",
        show_default=True,
        envvar="REELHARVEST_API_BASE",
    )


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def _check_status(value: Optional[str], choices: set[str], label: str) -> Optional[str]:
    if value is None:
        return None
    normalized = value.lower()
    if normalized not in choices:
        typer.echo(
            f"Invalid {label} value. Allowed values: " + ", ".join(sorted(choices)),
            err=True,
        )
        raise typer.Exit(code=1)
    return normalized


def _exit_on_error(response: httpx.Response, not_found: str) -> None:
    """Translate API error responses into CLI exits."""

    if response.status_code == 404:
        typer.echo(not_found, err=True)
        raise typer.Exit(code=1)
    if response.status_code in (409, 502, 503):
        detail = response.json().get("detail", response.text)
        typer.echo(f"Error: {detail}", err=True)
        raise typer.Exit(code=1)
    response.raise_for_status()


@app.command()
def health(api_base: str = _api_base_option()) -> None:
    """Call the /health endpoint and pretty-print the response."""

    with create_client(api_base) as client:
        response = client.get("/health")
        response.raise_for_status()
        _echo_json(response.json())


# ---------------------------------------------------------------------------
# sitemaps


@sitemaps_app.command("list")
def list_sitemaps(
    status: Optional[str] = typer.Option(None, "--status", help="Filter by sitemap status."),
    api_base: str = _api_base_option(),
) -> None:
    """Display registered sitemaps and their counters."""

    params: dict[str, object] = {}
    normalized = _check_status(status, SITEMAP_STATUS_CHOICES, "status")
    if normalized:
        params["status"] = normalized

    with create_client(api_base) as client:
        response = client.get("/sitemaps", params=params)
        response.raise_for_status()
        _echo_json(response.json())


@sitemaps_app.command("add")
def add_sitemap(
    site_name: str = typer.Argument(..., help="Display name of the site."),
    url: str = typer.Argument(..., help="Sitemap or listing page URL."),
    status: str = typer.Option("active", "--status", help="Initial sitemap status."),
    created_by: Optional[str] = typer.Option(None, "--created-by", help="Creator reference."),
    api_base: str = _api_base_option(),
) -> None:
    """Register a sitemap and resolve its movie candidates."""

    payload: dict[str, object] = {
        "site_name": site_name,
        "url": url,
        "status": _check_status(status, SITEMAP_STATUS_CHOICES, "status"),
    }
    if created_by is not None:
        payload["created_by"] = created_by

    with create_client(api_base) as client:
        response = client.post("/sitemaps", json=payload)
        _exit_on_error(response, "Sitemap not found")
        _echo_json(response.json())


@sitemaps_app.command("show")
def show_sitemap(
    sitemap_id: int = typer.Argument(..., help="Identifier of the sitemap."),
    api_base: str = _api_base_option(),
) -> None:
    """Display a single sitemap."""

    with create_client(api_base) as client:
        response = client.get(f"/sitemaps/{sitemap_id}")
        _exit_on_error(response, "Sitemap not found")
        _echo_json(response.json())


@sitemaps_app.command("update")
def update_sitemap(
    sitemap_id: int = typer.Argument(..., help="Identifier of the sitemap."),
    site_name: Optional[str] = typer.Option(None, "--site-name", help="New display name."),
    url: Optional[str] = typer.Option(None, "--url", help="New sitemap URL."),
    status: Optional[str] = typer.Option(None, "--status", help="New sitemap status."),
    resync: bool = typer.Option(
        False,
        "--resync/--no-resync",
        help="Allow a URL change, discarding everything scraped from the old URL.",
        show_default=True,
    ),
    api_base: str = _api_base_option(),
) -> None:
    """Update a sitemap's name, status or URL."""

    payload: dict[str, object] = {}
    if site_name is not None:
        payload["site_name"] = site_name
    if url is not None:
        payload["url"] = url
    normalized = _check_status(status, SITEMAP_STATUS_CHOICES, "status")
    if normalized is not None:
        payload["status"] = normalized

    if not payload:
        typer.echo("No updates supplied.")
        raise typer.Exit(code=1)
    payload["resync"] = resync

    with create_client(api_base) as client:
        response = client.put(f"/sitemaps/{sitemap_id}", json=payload)
        _exit_on_error(response, "Sitemap not found")
        _echo_json(response.json())


@sitemaps_app.command("delete")
def delete_sitemap(
    sitemap_id: int = typer.Argument(..., help="Identifier of the sitemap."),
    api_base: str = _api_base_option(),
) -> None:
    """Delete a sitemap with its candidates and scraped movies."""

    with create_client(api_base) as client:
        response = client.delete(f"/sitemaps/{sitemap_id}")
        _exit_on_error(response, "Sitemap not found")
        typer.echo(f"Deleted sitemap {sitemap_id}")


@sitemaps_app.command("resolve")
def resolve_sitemap_command(
    sitemap_id: int = typer.Argument(..., help="Identifier of the sitemap."),
    api_base: str = _api_base_option(),
) -> None:
    """Fetch the sitemap again and store new candidates."""

    with create_client(api_base, timeout=60.0) as client:
        response = client.post(f"/sitemaps/{sitemap_id}/resolve")
        _exit_on_error(response, "Sitemap not found")
        _echo_json(response.json())


# ---------------------------------------------------------------------------
# candidates and movies


@urls_app.command("list")
def list_urls(
    sitemap_id: Optional[int] = typer.Option(None, "--sitemap-id", help="Limit to one sitemap."),
    status: Optional[str] = typer.Option(None, "--status", help="Filter by candidate status."),
    stats: bool = typer.Option(False, "--stats/--no-stats", help="Include aggregate counters."),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Maximum entries to show."),
    api_base: str = _api_base_option(),
) -> None:
    """Display candidate movie URLs."""

    params: dict[str, object] = {"include_stats": stats}
    if sitemap_id is not None:
        params["sitemap_id"] = sitemap_id
    normalized = _check_status(status, MOVIE_STATUS_CHOICES, "status")
    if normalized:
        params["status"] = normalized
    if limit is not None:
        params["limit"] = limit

    with create_client(api_base) as client:
        response = client.get("/extracted-movies", params=params)
        response.raise_for_status()
        _echo_json(response.json())


@movies_app.command("list")
def list_movies(
    sitemap_id: Optional[int] = typer.Option(None, "--sitemap-id", help="Limit to one sitemap."),
    status: Optional[str] = typer.Option(None, "--status", help="Filter by movie status."),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Maximum entries to show."),
    with_images: bool = typer.Option(
        False,
        "--with-images/--without-images",
        help="Keep the inline base64 poster data in the output.",
    ),
    api_base: str = _api_base_option(),
) -> None:
    """Display scraped movies, most recent first."""

    params: dict[str, object] = {}
    if sitemap_id is not None:
        params["sitemap_id"] = sitemap_id
    normalized = _check_status(status, MOVIE_STATUS_CHOICES, "status")
    if normalized:
        params["status"] = normalized
    if limit is not None:
        params["limit"] = limit

    with create_client(api_base) as client:
        response = client.get("/raw-movies", params=params)
        response.raise_for_status()
        payload = response.json()

    if not with_images:
        for item in payload["items"]:
            if item.get("image_data"):
                item["image_data"] = f"<{len(item['image_data'])} chars>"
    _echo_json(payload)


@movies_app.command("show")
def show_movie(
    movie_id: int = typer.Argument(..., help="Identifier of the scraped movie."),
    api_base: str = _api_base_option(),
) -> None:
    """Display a single scraped movie."""

    with create_client(api_base) as client:
        response = client.get(f"/raw-movies/{movie_id}")
        _exit_on_error(response, "Movie not found")
        _echo_json(response.json())


# ---------------------------------------------------------------------------
# scraping


@scrape_app.command("run")
def scrape_run(
    sitemap_id: int = typer.Argument(..., help="Sitemap whose active candidates are scraped."),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Maximum URLs to scrape."),
    download_images: Optional[bool] = typer.Option(
        None,
        "--download-images/--no-download-images",
        help="Override the configured poster download behaviour.",
        show_default=False,
    ),
    api_base: str = _api_base_option(),
) -> None:
    """Enqueue a background scrape batch."""

    payload: dict[str, object] = {"sitemap_id": sitemap_id}
    if limit is not None:
        payload["limit"] = limit
    if download_images is not None:
        payload["download_images"] = download_images

    with create_client(api_base) as client:
        response = client.post("/scraper/run", json=payload)
        _exit_on_error(response, "Sitemap not found")
        _echo_json(response.json())


@scrape_app.command("single")
def scrape_single(
    extracted_movie_id: int = typer.Argument(..., help="Candidate to scrape."),
    download_images: Optional[bool] = typer.Option(
        None,
        "--download-images/--no-download-images",
        help="Override the configured poster download behaviour.",
        show_default=False,
    ),
    api_base: str = _api_base_option(),
) -> None:
    """Scrape one candidate immediately and print the stored movie."""

    payload: dict[str, object] = {"extracted_movie_id": extracted_movie_id}
    if download_images is not None:
        payload["download_images"] = download_images

    with create_client(api_base, timeout=120.0) as client:
        response = client.post("/scraper/single", json=payload)
        _exit_on_error(response, "Extracted movie not found")
        _echo_json(response.json())


# ---------------------------------------------------------------------------
# jobs


@jobs_app.command("list")
def list_jobs(
    limit: int = typer.Option(10, min=1, max=100, help="Number of recent jobs to display."),
    statuses: Optional[List[str]] = typer.Option(
        None,
        "--status",
        help="Filter results to specific job statuses (repeat the flag).",
    ),
    job_type: Optional[str] = typer.Option(
        None,
        "--type",
        help="Filter results to a specific job type.",
    ),
    sitemap_id: Optional[int] = typer.Option(
        None,
        "--sitemap-id",
        help="Only show jobs that target this sitemap.",
    ),
    api_base: str = _api_base_option(),
) -> None:
    """Display recent jobs stored by the manager."""

    params: dict[str, object] = {"limit": limit}
    if statuses:
        params["status"] = [
            _check_status(status, JOB_STATUS_CHOICES, "status") for status in statuses
        ]
    if job_type:
        params["type"] = job_type
    if sitemap_id is not None:
        params["sitemap_id"] = sitemap_id

    with create_client(api_base) as client:
        response = client.get("/jobs", params=params)
        response.raise_for_status()
        _echo_json(response.json())


@jobs_app.command("show")
def show_job(
    job_id: str = typer.Argument(..., help="Identifier of the job to display."),
    api_base: str = _api_base_option(),
) -> None:
    """Display details for a single job."""

    with create_client(api_base) as client:
        response = client.get(f"/jobs/{job_id}")
        _exit_on_error(response, "Job not found")
        _echo_json(response.json())


@jobs_app.command("logs")
def job_logs(
    job_id: str = typer.Argument(..., help="Identifier of the job to inspect."),
    limit: int = typer.Option(50, min=1, max=1000, help="Maximum number of log entries."),
    level: Optional[str] = typer.Option(None, "--level", help="Only show entries of this level."),
    api_base: str = _api_base_option(),
) -> None:
    """Display persisted log events for a job."""

    params: dict[str, object] = {"limit": limit}
    if level:
        params["level"] = level
    with create_client(api_base) as client:
        response = client.get(f"/jobs/{job_id}/logs", params=params)
        _exit_on_error(response, "Job not found")
        _echo_json(response.json())


# ---------------------------------------------------------------------------
# local probes


def build_fetch_controller() -> FetchController:
    """Create a controller configured from the environment settings."""

    return FetchController(ManagerSettings().scraper_config())


async def _probe_resolve(url: str) -> list[dict[str, str]]:
    async with build_fetch_controller() as fetcher:
        candidates = await resolve_sitemap(url, fetcher=fetcher)
    return [{"title": candidate.title, "url": candidate.url} for candidate in candidates]


async def _probe_extract(url: str) -> dict[str, Any] | None:
    async with build_fetch_controller() as fetcher:
        movie = await MovieExtractor(fetcher).extract_movie_details(url)
    return movie.to_dict() if movie else None


@probe_app.command("resolve")
def probe_resolve(url: str = typer.Argument(..., help="Sitemap or listing page URL.")) -> None:
    """Resolve a sitemap locally and print its movie candidates."""

    try:
        candidates = asyncio.run(_probe_resolve(url))
    except HarvesterError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    _echo_json(candidates)


@probe_app.command("extract")
def probe_extract(url: str = typer.Argument(..., help="Movie detail page URL.")) -> None:
    """Extract one detail page locally and print the movie fields."""

    movie = asyncio.run(_probe_extract(url))
    if movie is None:
        typer.echo(f"Failed to extract movie details from {url}", err=True)
        raise typer.Exit(code=1)
    _echo_json(movie)
