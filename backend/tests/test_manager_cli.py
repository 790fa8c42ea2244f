"""Tests for the Typer-based manager CLI."""
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import importlib

import httpx
import pytest
from fastapi.testclient import TestClient
from rq.worker import SimpleWorker
from typer.testing import CliRunner

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.harvester import FetchController, ScraperConfig  # noqa: E402
from backend.manager_api import create_app  # noqa: E402
from backend.manager_api.settings import ManagerSettings  # noqa: E402
from backend.manager_cli import app as cli_app  # noqa: E402
from backend.manager_cli import client as client_module  # noqa: E402

cli_app_module = importlib.import_module("backend.manager_cli.app")
scraper_module = importlib.import_module("backend.manager_api.services.scraper")

SITEMAP_URL = "https://shows.example/sitemap.xml"
MOVIE_URL = "https://shows.example/movie/night-train-2020/"

PAGES = {
    SITEMAP_URL: (
        '<?xml version="1.0"?><urlset>'
        f"<url><loc>{MOVIE_URL}</loc></url>"
        "<url><loc>https://shows.example/contact/</loc></url>"
        "</urlset>"
    ),
    MOVIE_URL: (
        "<html><body><h1>Night Train</h1>"
        "<p>Genre: Mystery<br>Director: Lee Rail<br>Duration: 1h 48m</p></body></html>"
    ),
}


def site_handler(request: httpx.Request) -> httpx.Response:
    page = PAGES.get(str(request.url))
    if page is None:
        return httpx.Response(404)
    return httpx.Response(200, text=page)


def _fake_fetcher() -> FetchController:
    config = ScraperConfig(rate_limit_interval=0, retry_delay=0, backoff_base=0, fetch_attempts=1)
    return FetchController(config, transport=httpx.MockTransport(site_handler))


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def cli_client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    """Provide a TestClient and patch the CLI HTTP client factory."""

    monkeypatch.setattr(
        scraper_module,
        "create_fetch_controller",
        lambda settings: FetchController(
            settings.scraper_config(), transport=httpx.MockTransport(site_handler)
        ),
    )

    db_path = tmp_path / "manager.db"
    settings = ManagerSettings(
        database_url=f"sqlite:///{db_path}",
        redis_url="fakeredis://",
        rate_limit_interval=0,
        retry_delay=0,
        backoff_base=0,
        download_images=False,
    )
    app = create_app(settings=settings)
    test_client = TestClient(app)

    original_factory = client_module.create_client
    original_app_factory = cli_app_module.create_client

    def _factory(base_url: str, *, timeout: float = 10.0, transport: Any = None):  # type: ignore[override]
        return test_client

    client_module.create_client = _factory  # type: ignore[assignment]
    cli_app_module.create_client = _factory  # type: ignore[assignment]

    yield test_client

    client_module.create_client = original_factory  # type: ignore[assignment]
    cli_app_module.create_client = original_app_factory  # type: ignore[assignment]


def drain_jobs(client: TestClient) -> None:
    """Process queued jobs for CLI-oriented tests."""

    app_state = client.app.state.app_state
    worker = SimpleWorker([app_state.job_queue.queue], connection=app_state.job_queue.connection)
    worker.work(burst=True)


def _add_sitemap(runner: CliRunner) -> dict[str, Any]:
    result = runner.invoke(cli_app, ["sitemaps", "add", "Shows", SITEMAP_URL])
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


def test_health_command_outputs_status(runner: CliRunner, cli_client: TestClient) -> None:
    result = runner.invoke(cli_app, ["health"])

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["status"] == "ok"
    assert payload["queue"]["status"] == "ok"


def test_sitemaps_add_and_list(runner: CliRunner, cli_client: TestClient) -> None:
    created = _add_sitemap(runner)

    assert created["movie_count"] == 1
    assert created["sitemap"]["site_name"] == "Shows"

    result = runner.invoke(cli_app, ["sitemaps", "list", "--status", "ACTIVE"])
    assert result.exit_code == 0
    listing = json.loads(result.output)
    assert [item["url"] for item in listing["items"]] == [SITEMAP_URL]

    show = runner.invoke(cli_app, ["sitemaps", "show", str(created["sitemap"]["id"])])
    assert show.exit_code == 0
    assert json.loads(show.output)["id"] == created["sitemap"]["id"]


def test_sitemaps_add_duplicate_reports_error(runner: CliRunner, cli_client: TestClient) -> None:
    _add_sitemap(runner)

    result = runner.invoke(cli_app, ["sitemaps", "add", "Shows", SITEMAP_URL])

    assert result.exit_code == 1
    assert "Sitemap URL already registered" in result.output


def test_sitemaps_list_rejects_unknown_status(runner: CliRunner, cli_client: TestClient) -> None:
    result = runner.invoke(cli_app, ["sitemaps", "list", "--status", "archived"])

    assert result.exit_code == 1
    assert "Invalid status value" in result.output


def test_sitemaps_update_requires_resync_for_url(runner: CliRunner, cli_client: TestClient) -> None:
    sitemap_id = str(_add_sitemap(runner)["sitemap"]["id"])

    rejected = runner.invoke(cli_app, ["sitemaps", "update", sitemap_id, "--url", "https://shows.example/other.xml"])
    assert rejected.exit_code == 1
    assert "requires resync=true" in rejected.output

    renamed = runner.invoke(cli_app, ["sitemaps", "update", sitemap_id, "--site-name", "Shows HQ"])
    assert renamed.exit_code == 0
    assert json.loads(renamed.output)["sitemap"]["site_name"] == "Shows HQ"

    nothing = runner.invoke(cli_app, ["sitemaps", "update", sitemap_id])
    assert nothing.exit_code == 1
    assert "No updates supplied." in nothing.output


def test_sitemaps_resolve_and_delete(runner: CliRunner, cli_client: TestClient) -> None:
    sitemap_id = str(_add_sitemap(runner)["sitemap"]["id"])

    resolved = runner.invoke(cli_app, ["sitemaps", "resolve", sitemap_id])
    assert resolved.exit_code == 0
    assert json.loads(resolved.output)["inserted_count"] == 0

    deleted = runner.invoke(cli_app, ["sitemaps", "delete", sitemap_id])
    assert deleted.exit_code == 0
    assert f"Deleted sitemap {sitemap_id}" in deleted.output

    missing = runner.invoke(cli_app, ["sitemaps", "show", sitemap_id])
    assert missing.exit_code == 1
    assert "Sitemap not found" in missing.output


def test_urls_list_with_stats(runner: CliRunner, cli_client: TestClient) -> None:
    _add_sitemap(runner)

    result = runner.invoke(cli_app, ["urls", "list", "--stats", "--status", "active"])

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert [item["url"] for item in payload["items"]] == [MOVIE_URL]
    assert payload["stats"]["total_movies"] == 1


def test_scrape_single_and_movie_commands(runner: CliRunner, cli_client: TestClient) -> None:
    _add_sitemap(runner)
    candidate_id = json.loads(runner.invoke(cli_app, ["urls", "list"]).output)["items"][0]["id"]

    scraped = runner.invoke(cli_app, ["scrape", "single", str(candidate_id)])
    assert scraped.exit_code == 0, scraped.output
    movie = json.loads(scraped.output)
    assert movie["title"] == "Night Train"
    assert movie["duration"] == "1h 48m"

    listing = runner.invoke(cli_app, ["movies", "list"])
    assert listing.exit_code == 0
    assert [item["title"] for item in json.loads(listing.output)["items"]] == ["Night Train"]

    shown = runner.invoke(cli_app, ["movies", "show", str(movie["id"])])
    assert shown.exit_code == 0
    assert json.loads(shown.output)["director"] == "Lee Rail"

    missing = runner.invoke(cli_app, ["movies", "show", "999"])
    assert missing.exit_code == 1
    assert "Movie not found" in missing.output


def test_scrape_run_and_job_commands(runner: CliRunner, cli_client: TestClient) -> None:
    sitemap_id = str(_add_sitemap(runner)["sitemap"]["id"])

    started = runner.invoke(cli_app, ["scrape", "run", sitemap_id, "--limit", "5", "--no-download-images"])
    assert started.exit_code == 0, started.output
    job = json.loads(started.output)
    assert job["status"] == "queued"
    assert job["payload"] == {"sitemap_id": int(sitemap_id), "limit": 5, "download_images": False}

    drain_jobs(cli_client)

    shown = runner.invoke(cli_app, ["jobs", "show", job["id"]])
    assert shown.exit_code == 0
    detail = json.loads(shown.output)
    assert detail["status"] == "completed"
    assert detail["result"]["titles"] == ["Night Train"]

    listed = runner.invoke(cli_app, ["jobs", "list", "--status", "completed", "--type", "scrape_batch"])
    assert listed.exit_code == 0
    assert [item["id"] for item in json.loads(listed.output)] == [job["id"]]
    by_sitemap = runner.invoke(cli_app, ["jobs", "list", "--sitemap-id", sitemap_id])
    assert [item["id"] for item in json.loads(by_sitemap.output)] == [job["id"]]
    other_sitemap = runner.invoke(cli_app, ["jobs", "list", "--sitemap-id", "999"])
    assert json.loads(other_sitemap.output) == []

    logs = runner.invoke(cli_app, ["jobs", "logs", job["id"], "--level", "info"])
    assert logs.exit_code == 0
    messages = [entry["message"] for entry in json.loads(logs.output)]
    assert messages[-1] == "Job completed"

    missing = runner.invoke(cli_app, ["jobs", "show", "missing"])
    assert missing.exit_code == 1
    assert "Job not found" in missing.output


def test_scrape_run_unknown_sitemap(runner: CliRunner, cli_client: TestClient) -> None:
    result = runner.invoke(cli_app, ["scrape", "run", "404"])

    assert result.exit_code == 1
    assert "Sitemap not found" in result.output


def test_probe_commands_run_engine_locally(runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli_app_module, "build_fetch_controller", _fake_fetcher)

    resolved = runner.invoke(cli_app, ["probe", "resolve", SITEMAP_URL])
    assert resolved.exit_code == 0
    assert json.loads(resolved.output) == [{"title": "Night Train", "url": MOVIE_URL}]

    extracted = runner.invoke(cli_app, ["probe", "extract", MOVIE_URL])
    assert extracted.exit_code == 0
    movie = json.loads(extracted.output)
    assert movie["title"] == "Night Train"
    assert movie["genre"] == "Mystery"


def test_probe_commands_report_failures(runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli_app_module, "build_fetch_controller", _fake_fetcher)

    resolved = runner.invoke(cli_app, ["probe", "resolve", "https://shows.example/missing.xml"])
    assert resolved.exit_code == 1
    assert "HTTP 404" in resolved.output

    extracted = runner.invoke(cli_app, ["probe", "extract", "https://shows.example/movie/gone-2020/"])
    assert extracted.exit_code == 1
    assert "Failed to extract movie details" in extracted.output
