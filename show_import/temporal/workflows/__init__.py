"""Temporal workflows."""

from show_import.temporal.workflows.import_job_workflow import ImportJobWorkflow

ALL_WORKFLOWS = [ImportJobWorkflow]

__all__ = ["ALL_WORKFLOWS", "ImportJobWorkflow"]
