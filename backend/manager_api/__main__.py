"""CLI entry point for launching the manager API with Uvicorn."""
import logging
import os

import uvicorn

from .app import create_app


def main() -> None:
    """Start a development server for the manager API."""

    logging.basicConfig(level=logging.INFO)
    host = os.environ.get("REELHARVEST_API_HOST", "0.0.0.0")
    port = int(os.environ.get("REELHARVEST_API_PORT", "8000"))
    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    main()
