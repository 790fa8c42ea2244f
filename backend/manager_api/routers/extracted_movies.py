"""Endpoints for candidate movie URLs discovered in sitemaps."""
from fastapi import APIRouter, Depends, HTTPException, Query, Response

from ..dependencies import get_extracted_movie_store
from ..schemas import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    ExtractedMovieListModel,
    ExtractedMovieModel,
    ExtractedMovieStatusUpdate,
    MovieStatus,
)
from ..stores.extracted_movie_store import ExtractedMovieStore

router = APIRouter(prefix="/extracted-movies", tags=["extracted-movies"])


@router.get("", response_model=ExtractedMovieListModel)
def list_extracted_movies(
    sitemap_id: int | None = Query(default=None, description="Limit to one sitemap."),
    status: MovieStatus | None = Query(default=None, description="Filter by candidate status."),
    include_stats: bool = Query(default=False, description="Attach aggregate counters."),
    limit: int | None = Query(default=None, ge=1, le=5000),
    store: ExtractedMovieStore = Depends(get_extracted_movie_store),
) -> ExtractedMovieListModel:
    """Return stored candidates, oldest first."""

    items = store.list(sitemap_id=sitemap_id, status=status, limit=limit)
    stats = store.stats() if include_stats else None
    return ExtractedMovieListModel(items=items, stats=stats)


@router.put("/{movie_id}/status", response_model=ExtractedMovieModel)
def update_extracted_movie_status(
    movie_id: int,
    payload: ExtractedMovieStatusUpdate,
    store: ExtractedMovieStore = Depends(get_extracted_movie_store),
) -> ExtractedMovieModel:
    movie = store.update_status(movie_id, payload.status)
    if movie is None:
        raise HTTPException(status_code=404, detail="Extracted movie not found")
    return movie


@router.delete("/{movie_id}", status_code=204)
def delete_extracted_movie(
    movie_id: int,
    store: ExtractedMovieStore = Depends(get_extracted_movie_store),
) -> Response:
    if not store.delete(movie_id):
        raise HTTPException(status_code=404, detail="Extracted movie not found")
    return Response(status_code=204)


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
def bulk_delete_extracted_movies(
    payload: BulkDeleteRequest,
    store: ExtractedMovieStore = Depends(get_extracted_movie_store),
) -> BulkDeleteResponse:
    """Delete several candidates, reporting the ones that could not be removed."""

    outcome = BulkDeleteResponse()
    for movie_id in payload.ids:
        if store.delete(movie_id):
            outcome.deleted += 1
        else:
            outcome.failed += 1
            outcome.errors.append(f"Extracted movie {movie_id} not found")
    return outcome
