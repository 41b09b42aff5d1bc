"""Service health: database reachability plus background worker liveness."""

from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from show_import.api.deps import get_worker_registry
from show_import.core.config import settings
from show_import.core.database import db_client
from show_import.services.imports import WorkerHeartbeatRegistry
from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


class HealthCheckResponse(BaseModel):
    status: str = Field(..., description="healthy, or degraded when the database is unreachable")
    version: str
    service: str
    database: Dict[str, Any] = Field(default_factory=dict)
    background_workers: int = Field(0, description="Workers with a recent heartbeat")


@router.get(
    "/",
    response_model=HealthCheckResponse,
    summary="Service health",
    operation_id="get_service_health_status",
)
async def health_check(
    registry: Annotated[WorkerHeartbeatRegistry, Depends(get_worker_registry)],
) -> HealthCheckResponse:
    """Report database health and the number of live import workers.

    Missing workers do not degrade the service: small imports still run
    inline, only background submissions are refused.
    """
    database = await db_client.health_check()
    workers = registry.status()
    if database["status"] != "healthy":
        LOGGER.warning("Service degraded: database unreachable", extra={"database": database})

    return HealthCheckResponse(
        status="healthy" if database["status"] == "healthy" else "degraded",
        version=settings.app_version,
        service=settings.app_name,
        database=database,
        background_workers=workers["active_workers"],
    )
