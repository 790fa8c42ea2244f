"""Endpoints that start scrape runs."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError

from ..dependencies import (
    get_extracted_movie_store,
    get_job_log_store,
    get_job_queue,
    get_job_store,
    get_scrape_service,
    get_sitemap_store,
)
from ..schemas import JobModel, RawMovieModel, ScrapeRunRequest, ScrapeSingleRequest
from ..services.queue import JobQueueError, JobQueueService
from ..services.scraper import ScrapeService, ScrapeServiceError
from ..services.tasks import SCRAPE_BATCH
from ..stores.extracted_movie_store import ExtractedMovieStore
from ..stores.job_log_store import JobLogStore
from ..stores.job_store import JobStore
from ..stores.sitemap_store import SitemapStore

router = APIRouter(prefix="/scraper", tags=["scraper"])


@router.post("/run", response_model=JobModel, status_code=201)
def run_scrape(
    request: ScrapeRunRequest,
    sitemaps: SitemapStore = Depends(get_sitemap_store),
    store: JobStore = Depends(get_job_store),
    log_store: JobLogStore = Depends(get_job_log_store),
    queue: JobQueueService = Depends(get_job_queue),
) -> JobModel:
    """Enqueue a background batch over the sitemap's active candidates."""

    if sitemaps.get(request.sitemap_id) is None:
        raise HTTPException(status_code=404, detail="Sitemap not found")

    try:
        return queue.enqueue(
            store,
            log_store,
            SCRAPE_BATCH,
            request.model_dump(exclude_none=True),
        )
    except JobQueueError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.post("/single", response_model=RawMovieModel, status_code=201)
def scrape_single(
    request: ScrapeSingleRequest,
    candidates: ExtractedMovieStore = Depends(get_extracted_movie_store),
    service: ScrapeService = Depends(get_scrape_service),
) -> RawMovieModel:
    """Scrape one candidate inline and return the stored movie."""

    candidate = candidates.get(request.extracted_movie_id)
    if candidate is None:
        raise HTTPException(status_code=404, detail="Extracted movie not found")

    try:
        return service.scrape_single(candidate, download_images=request.download_images)
    except ScrapeServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="Movie URL already scraped") from exc
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
