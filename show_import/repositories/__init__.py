"""Repository layer modules."""

from show_import.repositories.import_job_repository import ImportJobRepository
from show_import.repositories.organization_record_repository import OrganizationRecordRepository

__all__ = [
    "ImportJobRepository",
    "OrganizationRecordRepository",
]
