"""Engine construction and schema setup for the Reelharvest database."""
from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, create_engine

from . import models  # noqa: F401  registers the tables on SQLModel.metadata
from .settings import ManagerSettings

logger = logging.getLogger(__name__)

SQLITE_PREFIX = "sqlite:///"


def sqlite_file(database_url: str) -> Path | None:
    """Return the database file of a file-backed SQLite URL."""

    if not database_url.startswith(SQLITE_PREFIX):
        return None
    path_part = database_url[len(SQLITE_PREFIX):].split("?", 1)[0]
    if not path_part or path_part == ":memory:":
        return None
    return Path(path_part)


def create_engine_from_settings(settings: ManagerSettings) -> Engine:
    """Create the engine, preparing the SQLite directory when needed.

    Stores are shared between request threads and the batch's persistence
    thread, so SQLite connections are not pinned to their creating thread.
    """

    connect_args: dict[str, object] = {}
    if settings.database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        db_file = sqlite_file(settings.database_url)
        if db_file is not None:
            db_file.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(settings.database_url, echo=settings.database_echo, connect_args=connect_args)


def init_database(engine: Engine) -> None:
    """Create the sitemap, movie and job tables if they are missing."""

    SQLModel.metadata.create_all(engine)


def database_reachable(engine: Engine) -> bool:
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Database health check failed: %s", exc)
        return False
    return True
