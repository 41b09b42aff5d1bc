from typing import Annotated

from fastapi import APIRouter, Depends, Request

from show_import.api.deps import get_worker_registry
from show_import.schemas.common import ApiResponse
from show_import.schemas.imports import WorkerHealthResponse, WorkerHeartbeatRequest
from show_import.services.imports import WorkerHeartbeatRegistry
from show_import.utils.responses import create_api_response

router = APIRouter()


@router.get(
    "/health",
    response_model=ApiResponse,
    summary="Import worker health",
    operation_id="get_import_worker_health",
)
async def get_worker_health(
    request: Request,
    registry: Annotated[WorkerHeartbeatRegistry, Depends(get_worker_registry)],
) -> ApiResponse:
    """Report whether any worker has sent a heartbeat recently."""
    return create_api_response(
        data=WorkerHealthResponse(**registry.status()),
        message="Worker health retrieved",
        request=request,
    )


@router.post(
    "/health",
    response_model=ApiResponse,
    summary="Record a worker heartbeat",
    operation_id="record_import_worker_heartbeat",
)
async def record_worker_heartbeat(
    request: Request,
    payload: WorkerHeartbeatRequest,
    registry: Annotated[WorkerHeartbeatRegistry, Depends(get_worker_registry)],
) -> ApiResponse:
    registry.record(payload.worker_id)
    return create_api_response(
        data=WorkerHealthResponse(**registry.status()),
        message="Heartbeat recorded",
        request=request,
    )
