"""Duplicate detection against existing organization records."""

from show_import.services.duplicates.duplicate_matcher import (
    DuplicateMatcher,
    OrganizationRecordSource,
    ShowRecord,
    VenueRecord,
)
from show_import.services.duplicates.venue_cache import VenueCache

__all__ = [
    "DuplicateMatcher",
    "OrganizationRecordSource",
    "ShowRecord",
    "VenueCache",
    "VenueRecord",
]
