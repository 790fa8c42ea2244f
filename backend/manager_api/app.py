"""Application factory for the Reelharvest manager API."""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import extracted_movies, health, jobs, raw_movies, scraper, sitemaps
from .settings import ManagerSettings
from .state import AppState

ROUTERS = (
    health.router,
    sitemaps.router,
    extracted_movies.router,
    raw_movies.router,
    scraper.router,
    jobs.router,
)


def create_app(settings: ManagerSettings | None = None) -> FastAPI:
    """Build the API around one shared ``AppState``."""

    app_state = AppState(settings=settings or ManagerSettings())

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        app_state.engine.dispose()

    app = FastAPI(title="Reelharvest Manager API", version="0.1.0", lifespan=lifespan)
    app.state.app_state = app_state
    app.state.settings = app_state.settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    for router in ROUTERS:
        app.include_router(router)
    return app
