"""Starts import workflows from the API process."""

import uuid
from datetime import timedelta
from typing import Optional

from show_import.core.config import settings
from show_import.core.temporal_client import get_temporal_client, reset_temporal_client
from show_import.temporal.core.constants import IMPORT_WORKFLOW_TIMEOUT_SECONDS
from show_import.temporal.workflows.import_job_workflow import ImportJobWorkflow
from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)


class TemporalJobDispatcher:
    """Queues import jobs on the Temporal task queue."""

    def __init__(self, task_queue: Optional[str] = None):
        self.task_queue = task_queue or settings.temporal.task_queue

    async def dispatch(self, job_id: str, enhanced: bool = False) -> str:
        """Start an ImportJobWorkflow for ``job_id``.

        Each attempt gets its own workflow id so retries never collide with
        a previous run of the same job.

        Returns:
            The Temporal workflow id
        """
        workflow_id = f"import-job-{job_id}-{uuid.uuid4().hex[:8]}"
        try:
            temporal_client = await get_temporal_client()
            handle = await temporal_client.start_workflow(
                ImportJobWorkflow.run,
                {"job_id": str(job_id), "enhanced": enhanced},
                id=workflow_id,
                task_queue=self.task_queue,
                execution_timeout=timedelta(seconds=IMPORT_WORKFLOW_TIMEOUT_SECONDS),
            )
        except Exception:
            # Reconnect on the next dispatch
            reset_temporal_client()
            raise

        LOGGER.info(
            f"Started import workflow {handle.id}",
            extra={"job_id": str(job_id), "task_queue": self.task_queue},
        )
        return handle.id
