"""Workflow running one import job attempt on the background worker."""

from datetime import timedelta
from typing import Dict, Optional

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError

from show_import.temporal.core.constants import (
    IMPORT_ACTIVITY_TIMEOUT_SECONDS,
    MARK_IMPORT_JOB_FAILED_ACTIVITY,
    PROCESS_IMPORT_JOB_ACTIVITY,
)


@workflow.defn
class ImportJobWorkflow:
    """Processes a queued import job.

    The activity persists every state change itself; the workflow only
    makes sure a job whose activity keeps failing ends up ``failed``.
    """

    def __init__(self):
        self._status = "initialized"
        self._job_id: Optional[str] = None

    @workflow.query
    def get_status(self) -> dict:
        """Query handler for real-time status updates."""
        return {"status": self._status, "job_id": self._job_id}

    @workflow.run
    async def run(self, payload: Dict) -> dict:
        """Run the import pipeline for ``payload["job_id"]``."""
        self._job_id = payload.get("job_id")
        enhanced = bool(payload.get("enhanced", False))
        if not self._job_id:
            raise ValueError("ImportJobWorkflow requires a job_id")

        self._status = "processing"
        workflow.logger.info(f"Processing import job {self._job_id} (enhanced={enhanced})")

        try:
            result = await workflow.execute_activity(
                PROCESS_IMPORT_JOB_ACTIVITY,
                args=[{"job_id": self._job_id, "enhanced": enhanced}],
                start_to_close_timeout=timedelta(seconds=IMPORT_ACTIVITY_TIMEOUT_SECONDS),
                retry_policy=RetryPolicy(maximum_attempts=3),
            )
        except ActivityError as e:
            workflow.logger.error(f"Import job {self._job_id} could not be processed: {e}")
            await workflow.execute_activity(
                MARK_IMPORT_JOB_FAILED_ACTIVITY,
                args=[self._job_id, str(e.cause or e)],
                start_to_close_timeout=timedelta(minutes=1),
            )
            self._status = "failed"
            return {"status": self._status, "job_id": self._job_id}

        self._status = result.get("status", "completed")
        return {"status": self._status, "job_id": self._job_id}
