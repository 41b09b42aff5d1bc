"""Shared constants for Temporal workflows."""

# Timeouts
IMPORT_WORKFLOW_TIMEOUT_SECONDS = 3600  # 1 hour
IMPORT_ACTIVITY_TIMEOUT_SECONDS = 900   # 15 minutes

# Activity names
PROCESS_IMPORT_JOB_ACTIVITY = "process_import_job"
MARK_IMPORT_JOB_FAILED_ACTIVITY = "mark_import_job_failed"
