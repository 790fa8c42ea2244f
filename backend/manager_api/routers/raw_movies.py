"""Endpoints for scraped movie metadata."""
from fastapi import APIRouter, Depends, HTTPException, Query, Response

from ..dependencies import get_raw_movie_store
from ..schemas import MovieStatus, RawMovieListModel, RawMovieModel, RawMovieUpdate
from ..stores.raw_movie_store import RawMovieStore

router = APIRouter(prefix="/raw-movies", tags=["raw-movies"])


@router.get("", response_model=RawMovieListModel)
def list_raw_movies(
    sitemap_id: int | None = Query(default=None, description="Limit to movies scraped from one sitemap."),
    status: MovieStatus | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1, le=5000),
    store: RawMovieStore = Depends(get_raw_movie_store),
) -> RawMovieListModel:
    """Return scraped movies, most recent first, with aggregate counters."""

    return RawMovieListModel(
        items=store.list(sitemap_id=sitemap_id, status=status, limit=limit),
        stats=store.stats(),
    )


@router.get("/{movie_id}", response_model=RawMovieModel)
def get_raw_movie(movie_id: int, store: RawMovieStore = Depends(get_raw_movie_store)) -> RawMovieModel:
    movie = store.get(movie_id)
    if movie is None:
        raise HTTPException(status_code=404, detail="Raw movie not found")
    return movie


@router.put("/{movie_id}", response_model=RawMovieModel)
def update_raw_movie(
    movie_id: int,
    payload: RawMovieUpdate,
    store: RawMovieStore = Depends(get_raw_movie_store),
) -> RawMovieModel:
    """Edit a scraped movie; only fields present in the request are changed."""

    movie = store.update(movie_id, payload.model_dump(exclude_unset=True))
    if movie is None:
        raise HTTPException(status_code=404, detail="Raw movie not found")
    return movie


@router.delete("/{movie_id}", status_code=204)
def delete_raw_movie(movie_id: int, store: RawMovieStore = Depends(get_raw_movie_store)) -> Response:
    if not store.delete(movie_id):
        raise HTTPException(status_code=404, detail="Raw movie not found")
    return Response(status_code=204)
