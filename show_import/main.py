"""FastAPI application for the show import service."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from show_import.api.v1.endpoints import health
from show_import.api.v1.router import api_router
from show_import.core.config import settings
from show_import.core.database import close_database, init_database
from show_import.core.temporal_client import reset_temporal_client
from show_import.repositories.organization_record_repository import load_org_venues
from show_import.services.duplicates import VenueCache
from show_import.services.imports import WorkerHeartbeatRegistry
from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__, level=settings.log_level)

CORRELATION_HEADER = "X-Correlation-ID"


class RootResponse(BaseModel):
    """Service banner returned from ``/``."""

    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Running application version")
    imports: str = Field(..., description="Base path of the import job API")
    worker_health: str = Field(..., description="Background worker health endpoint")
    ai_enhance_available: bool = Field(..., description="Whether an LLM key is configured")


async def _prepare_storage() -> None:
    """Create tables, bounded by ``DB_INIT_TIMEOUT``. Failures are logged, not raised."""
    try:
        await asyncio.wait_for(init_database(create_tables=True), timeout=settings.db.init_timeout_seconds)
        LOGGER.info("Import tables ready")
    except asyncio.TimeoutError:
        LOGGER.error(f"Database initialization timed out after {settings.db.init_timeout_seconds}s")
    except Exception as e:
        LOGGER.error(f"Database initialization failed: {e}", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    if not settings.llm.enabled:
        LOGGER.warning("OPENROUTER_API_KEY is not set; imports run pattern extraction only")

    LOGGER.info(
        f"Starting {settings.app_name} {settings.app_version}",
        extra={
            "environment": settings.environment,
            "task_queue": settings.temporal.task_queue,
            "background_source_threshold": settings.imports.background_source_threshold,
            "background_word_threshold": settings.imports.background_word_threshold,
        },
    )
    await _prepare_storage()

    yield

    LOGGER.info("Stopping show import service")
    app.state.venue_cache.invalidate()
    reset_temporal_client()
    try:
        await close_database()
    except Exception as e:
        LOGGER.error(f"Error closing database: {e}", exc_info=True)


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Turns pasted text, CSV exports and documents into show records for review",
    lifespan=lifespan,
)

# Shared by every request in this process; workers report into the registry
app.state.worker_registry = WorkerHeartbeatRegistry(stale_after_seconds=settings.worker.stale_after_seconds)
app.state.venue_cache = VenueCache(load_org_venues, ttl_seconds=settings.imports.venue_cache_ttl_seconds)


@app.middleware("http")
async def add_correlation_id(request: Request, call_next):
    correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid4())
    request.state.correlation_id = correlation_id
    response = await call_next(request)
    response.headers[CORRELATION_HEADER] = correlation_id
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=[CORRELATION_HEADER],
)

app.include_router(api_router, prefix=settings.api_v1_prefix)
app.include_router(health.router, prefix="/health", tags=["Health"])


@app.get("/", response_model=RootResponse, tags=["Root"], operation_id="get_service_banner")
async def root() -> RootResponse:
    return RootResponse(
        service=settings.app_name,
        version=settings.app_version,
        imports=f"{settings.api_v1_prefix}/imports",
        worker_health=f"{settings.api_v1_prefix}/import-worker/health",
        ai_enhance_available=settings.llm.enabled,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "show_import.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
