"""Persistence for import jobs."""

import uuid
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from show_import.core.exceptions import ConcurrentJobUpdateError, ImportJobNotFoundError
from show_import.database.models import ImportJob
from show_import.models.import_models import ExtractionMode, ImportStatus, ProgressStage
from show_import.repositories.base_repository import BaseRepository

JobId = Union[str, uuid.UUID]


def _as_uuid(job_id: JobId) -> Optional[uuid.UUID]:
    if isinstance(job_id, uuid.UUID):
        return job_id
    try:
        return uuid.UUID(str(job_id))
    except ValueError:
        return None


class ImportJobRepository(BaseRepository[ImportJob]):
    """Repository for import job records.

    ``update_job`` is the only write path after creation. It reads the whole
    record, applies the partial state and flushes under the optimistic
    ``version`` check.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, ImportJob)

    async def create_job(
        self,
        org_id: str,
        sources: List[Dict[str, Any]],
        created_by: Optional[str] = None,
        status: ImportStatus = ImportStatus.PENDING,
        **fields: Any,
    ) -> ImportJob:
        """Create a job record.

        Args:
            org_id: Owning organization
            sources: Serialized RawSource dicts, kept for replay
            created_by: Authenticated user that submitted the import
            status: Initial status
            **fields: Any other column values

        Returns:
            The created ImportJob
        """
        fields.setdefault("progress_stage", ProgressStage.QUEUED.value)
        for column in ("errors", "warnings", "previous_attempts"):
            fields.setdefault(column, [])

        job = await self.create(
            org_id=org_id,
            created_by=created_by,
            sources=list(sources),
            status=ImportStatus(status).value,
            **fields,
        )
        self.logger.info(
            f"Created import job {job.id}",
            extra={"job_id": str(job.id), "org_id": org_id, "source_count": len(sources)},
        )
        return job

    async def get_job(self, job_id: JobId, org_id: Optional[str] = None) -> Optional[ImportJob]:
        """Get a job, scoped to ``org_id`` when given.

        A job owned by another organization is reported as missing.
        """
        job_uuid = _as_uuid(job_id)
        if job_uuid is None:
            return None

        try:
            query = select(ImportJob).where(ImportJob.id == job_uuid)
            if org_id is not None:
                query = query.where(ImportJob.org_id == org_id)
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(f"Error retrieving import job {job_id}: {str(e)}", exc_info=True)
            raise

    async def list_jobs(self, org_id: str, limit: int = 50, offset: int = 0) -> List[ImportJob]:
        """An organization's jobs, newest first."""
        try:
            query = (
                select(ImportJob)
                .where(ImportJob.org_id == org_id)
                .order_by(ImportJob.created_at.desc(), ImportJob.id.desc())
                .limit(limit)
                .offset(offset)
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing import jobs for {org_id}: {str(e)}", exc_info=True)
            raise

    async def update_job(
        self,
        job_id: JobId,
        expected_version: Optional[int] = None,
        org_id: Optional[str] = None,
        **changes: Any,
    ) -> ImportJob:
        """Apply a partial state to a job.

        Args:
            job_id: Job to update
            expected_version: Version the caller read; a mismatch is a lost race
            org_id: Restrict the update to this organization's job
            **changes: Column values to set

        Returns:
            The updated ImportJob

        Raises:
            ImportJobNotFoundError: If the job does not exist (for this org)
            ConcurrentJobUpdateError: If the job changed since it was read
        """
        job = await self.get_job(job_id, org_id=org_id)
        if job is None:
            raise ImportJobNotFoundError(f"Import job {job_id} not found")

        if expected_version is not None and job.version != expected_version:
            raise ConcurrentJobUpdateError(
                f"Import job {job_id} was modified concurrently "
                f"(expected version {expected_version}, found {job.version})"
            )

        for key, value in changes.items():
            if isinstance(value, (ImportStatus, ProgressStage, ExtractionMode)):
                changes[key] = value.value

        try:
            return await self.update(job, **changes)
        except StaleDataError as e:
            raise ConcurrentJobUpdateError(
                f"Import job {job_id} was modified concurrently", original_error=e
            )
