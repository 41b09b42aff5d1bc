"""Import job orchestration."""

from show_import.services.imports.import_job_service import (
    ImportJobService,
    JobDispatcher,
    SourceUpload,
    build_import_pipeline,
)
from show_import.services.imports.import_pipeline import ImportPipeline, PipelineResult
from show_import.services.imports.worker_health import WorkerHealthCheck, WorkerHeartbeatRegistry

__all__ = [
    "ImportJobService",
    "ImportPipeline",
    "JobDispatcher",
    "PipelineResult",
    "SourceUpload",
    "WorkerHealthCheck",
    "WorkerHeartbeatRegistry",
    "build_import_pipeline",
]
