"""Service heartbeat covering the database and the job queue."""
from fastapi import APIRouter, Depends

from ..db import database_reachable
from ..dependencies import get_app_state, get_job_queue
from ..schemas import ComponentHealth, HealthStatus
from ..services.queue import JobQueueService
from ..state import AppState

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthStatus)
def get_health(
    app_state: AppState = Depends(get_app_state),
    queue: JobQueueService = Depends(get_job_queue),
) -> HealthStatus:
    """Report whether the scrape queue and the database answer."""

    database = ComponentHealth()
    if not database_reachable(app_state.engine):
        database = ComponentHealth(status="error", detail="database_unreachable")
    queue_health = ComponentHealth()
    if not queue.ping():
        queue_health = ComponentHealth(status="error", detail="queue_unreachable")
    return HealthStatus(database=database, queue=queue_health)
