"""Activities for background import jobs."""

from typing import Dict

from temporalio import activity

from show_import.core.database import async_session_maker
from show_import.models.import_models import ImportStatus, ProgressStage
from show_import.repositories.import_job_repository import ImportJobRepository
from show_import.services.imports.import_job_service import ImportJobService, build_import_pipeline
from show_import.temporal.core.constants import MARK_IMPORT_JOB_FAILED_ACTIVITY, PROCESS_IMPORT_JOB_ACTIVITY


@activity.defn(name=PROCESS_IMPORT_JOB_ACTIVITY)
async def process_import_job(payload: Dict) -> Dict:
    """Run the import pipeline for a queued job.

    Args:
        payload: ``{"job_id": str, "enhanced": bool}``

    Returns:
        ``{"job_id", "status"}`` of the finished attempt
    """
    job_id = payload["job_id"]
    enhanced = bool(payload.get("enhanced", False))

    activity.logger.info(
        f"Starting import job {job_id}",
        extra={"job_id": job_id, "enhanced": enhanced},
    )
    activity.heartbeat("Starting import pipeline")

    async with async_session_maker() as session:
        service = ImportJobService(session, pipeline=build_import_pipeline(session))
        job = await service.process_job(job_id, enhanced=enhanced)

    activity.heartbeat("Import pipeline finished")
    activity.logger.info(
        f"Import job {job_id} finished with status {job.status}",
        extra={"job_id": job_id, "status": job.status},
    )
    return {"job_id": job_id, "status": job.status}


@activity.defn(name=MARK_IMPORT_JOB_FAILED_ACTIVITY)
async def mark_import_job_failed(job_id: str, error_message: str) -> Dict:
    """Fail a job whose processing activity ran out of attempts."""
    activity.logger.error(
        f"Marking import job {job_id} as failed: {error_message}",
        extra={"job_id": job_id},
    )
    async with async_session_maker() as session:
        repo = ImportJobRepository(session)
        await repo.update_job(
            job_id,
            status=ImportStatus.FAILED,
            progress_stage=ProgressStage.FAILED,
            error_message=error_message,
        )
    return {"job_id": job_id, "status": ImportStatus.FAILED.value}
