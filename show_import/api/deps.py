"""Shared FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from show_import.core.config import settings
from show_import.core.database import get_async_session as get_session
from show_import.services.imports import (
    ImportJobService,
    WorkerHealthCheck,
    WorkerHeartbeatRegistry,
    build_import_pipeline,
)
from show_import.temporal.dispatcher import TemporalJobDispatcher


def get_worker_registry(request: Request) -> WorkerHeartbeatRegistry:
    return request.app.state.worker_registry


async def get_import_job_service(
    request: Request,
    db_session: Annotated[AsyncSession, Depends(get_session)],
) -> ImportJobService:
    return ImportJobService(
        db_session,
        pipeline=build_import_pipeline(db_session, venue_cache=request.app.state.venue_cache),
        worker_health=WorkerHealthCheck(
            settings.worker.health_url,
            timeout_seconds=settings.worker.health_timeout_seconds,
        ),
        dispatcher=TemporalJobDispatcher(),
    )
