from fastapi import APIRouter

from show_import.api.v1.endpoints import imports, worker_health

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(imports.router, prefix="/imports", tags=["Imports"])
api_router.include_router(worker_health.router, prefix="/import-worker", tags=["Import Worker"])

__all__ = ["api_router"]
