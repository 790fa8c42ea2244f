"""Sitemap registration and resolution endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.exc import IntegrityError

from ..dependencies import get_scrape_service, get_sitemap_store
from ..schemas import (
    SitemapCreate,
    SitemapListModel,
    SitemapModel,
    SitemapStatus,
    SitemapSyncResponse,
    SitemapUpdate,
)
from ..services.scraper import ScrapeService
from ..stores.sitemap_store import SitemapStore

router = APIRouter(prefix="/sitemaps", tags=["sitemaps"])


def _require_sitemap(store: SitemapStore, sitemap_id: int) -> SitemapModel:
    sitemap = store.get(sitemap_id)
    if sitemap is None:
        raise HTTPException(status_code=404, detail="Sitemap not found")
    return sitemap


@router.get("", response_model=SitemapListModel)
def list_sitemaps(
    status: SitemapStatus | None = Query(default=None, description="Filter by sitemap status."),
    store: SitemapStore = Depends(get_sitemap_store),
) -> SitemapListModel:
    """Return registered sitemaps with aggregate counters."""

    return SitemapListModel(items=store.list(status=status), stats=store.stats())


@router.post("", response_model=SitemapSyncResponse, status_code=201)
def create_sitemap(
    payload: SitemapCreate,
    store: SitemapStore = Depends(get_sitemap_store),
    service: ScrapeService = Depends(get_scrape_service),
) -> SitemapSyncResponse:
    """Register a sitemap and store the movie candidates it lists.

    A sitemap that cannot be fetched or parsed is still created; the failure is
    reported in ``parse_error``.
    """

    try:
        sitemap = store.create(payload)
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="Sitemap URL already registered") from exc

    outcome = service.resolve(sitemap)
    return SitemapSyncResponse(
        sitemap=sitemap,
        movie_count=outcome.movie_count,
        inserted_count=outcome.inserted_count,
        parse_error=outcome.parse_error,
    )


@router.get("/{sitemap_id}", response_model=SitemapModel)
def get_sitemap(sitemap_id: int, store: SitemapStore = Depends(get_sitemap_store)) -> SitemapModel:
    return _require_sitemap(store, sitemap_id)


@router.put("/{sitemap_id}", response_model=SitemapSyncResponse)
def update_sitemap(
    sitemap_id: int,
    payload: SitemapUpdate,
    store: SitemapStore = Depends(get_sitemap_store),
    service: ScrapeService = Depends(get_scrape_service),
) -> SitemapSyncResponse:
    """Update a sitemap.

    Changing the URL discards everything scraped from the old one, so it is only
    accepted together with ``resync=true``.
    """

    existing = _require_sitemap(store, sitemap_id)
    url_changed = payload.url is not None and payload.url != existing.url
    if url_changed and not payload.resync:
        raise HTTPException(
            status_code=409,
            detail="Changing the sitemap URL requires resync=true",
        )

    try:
        sitemap = store.update(
            sitemap_id,
            site_name=payload.site_name,
            url=payload.url if url_changed else None,
            status=payload.status,
            purge=url_changed,
        )
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="Sitemap URL already registered") from exc
    if sitemap is None:
        raise HTTPException(status_code=404, detail="Sitemap not found")

    if not url_changed:
        return SitemapSyncResponse(sitemap=sitemap)

    outcome = service.resolve(sitemap)
    return SitemapSyncResponse(
        sitemap=sitemap,
        movie_count=outcome.movie_count,
        inserted_count=outcome.inserted_count,
        parse_error=outcome.parse_error,
    )


@router.delete("/{sitemap_id}", status_code=204)
def delete_sitemap(sitemap_id: int, store: SitemapStore = Depends(get_sitemap_store)) -> Response:
    """Delete a sitemap together with its candidates and raw movies."""

    if not store.delete(sitemap_id):
        raise HTTPException(status_code=404, detail="Sitemap not found")
    return Response(status_code=204)


@router.post("/{sitemap_id}/resolve", response_model=SitemapSyncResponse)
def resolve_sitemap(
    sitemap_id: int,
    store: SitemapStore = Depends(get_sitemap_store),
    service: ScrapeService = Depends(get_scrape_service),
) -> SitemapSyncResponse:
    """Fetch the sitemap again and add any candidates not seen before."""

    sitemap = _require_sitemap(store, sitemap_id)
    outcome = service.resolve(sitemap)
    return SitemapSyncResponse(
        sitemap=sitemap,
        movie_count=outcome.movie_count,
        inserted_count=outcome.inserted_count,
        parse_error=outcome.parse_error,
    )
