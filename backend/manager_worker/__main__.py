"""Entry point for running the Reelharvest RQ worker."""
from __future__ import annotations

import logging
import os

from rq import SimpleWorker, Worker

from backend.manager_api.db import create_engine_from_settings, init_database
from backend.manager_api.services.queue import JobQueueService
from backend.manager_api.settings import ManagerSettings


def main() -> None:
    """Start an RQ worker that executes scrape batches from the configured queue."""

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = ManagerSettings()

    engine = create_engine_from_settings(settings)
    init_database(engine)
    engine.dispose()

    queue_service = JobQueueService(settings)

    # Use SimpleWorker on Windows to avoid fork issues
    worker_class = SimpleWorker if os.name == "nt" else Worker
    worker = worker_class(
        [queue_service.queue],
        connection=queue_service.connection,
        name=f"{settings.queue_worker_name}-{os.getpid()}",
    )
    logging.getLogger(__name__).info(
        "Listening on queue %s (%s)", settings.redis_queue_name, settings.redis_url
    )
    worker.work(with_scheduler=False)


if __name__ == "__main__":  # pragma: no cover - manual entrypoint
    main()
