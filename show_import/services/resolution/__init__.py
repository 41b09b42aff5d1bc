"""Fact resolution."""

from show_import.services.resolution.fact_resolver import FactResolver

__all__ = ["FactResolver"]
