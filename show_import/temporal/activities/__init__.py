"""Temporal activities."""

from show_import.temporal.activities.import_activities import mark_import_job_failed, process_import_job

ALL_ACTIVITIES = [process_import_job, mark_import_job_failed]

__all__ = ["ALL_ACTIVITIES", "mark_import_job_failed", "process_import_job"]
