"""Temporal background execution for import jobs."""
