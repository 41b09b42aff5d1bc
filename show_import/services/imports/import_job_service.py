"""Import job orchestration and state machine.

Jobs move ``pending → processing → completed | needs_review | failed``.
Retry and AI enhance snapshot the current result onto ``previous_attempts``
and send the job back to ``processing``. Every write goes through
``ImportJobRepository.update_job`` and its version check.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from show_import.core.config import ImportSettings, Settings, settings as app_settings
from show_import.core.exceptions import (
    ImportJobNotFoundError,
    JobStateError,
    ValidationError,
    WorkerUnavailableError,
)
from show_import.core.llm_client import create_llm_client
from show_import.database.models import ImportJob
from show_import.models.import_models import (
    ExtractionMode,
    ImportStatus,
    ImportWarning,
    ImportedDocument,
    ProgressStage,
    RawSource,
    RETRYABLE_STATUSES,
)
from show_import.repositories.import_job_repository import ImportJobRepository
from show_import.repositories.organization_record_repository import OrganizationRecordRepository
from show_import.services.base_service import BaseService
from show_import.services.chunking import SourceChunker
from show_import.services.duplicates import DuplicateMatcher, VenueCache
from show_import.services.extraction import AIFieldExtractor, FactExtractor, PatternExtractor
from show_import.services.imports.background_policy import (
    infer_document_category,
    low_text_warnings,
    resolve_mime_type,
    should_background,
)
from show_import.services.imports.import_pipeline import ImportPipeline
from show_import.services.imports.worker_health import WorkerHealthCheck
from show_import.services.normalization.text_normalizer import count_words
from show_import.services.resolution import FactResolver
from show_import.services.text_extraction_service import TextExtractionService
from show_import.utils.logging import get_job_logger, get_logger

LOGGER = get_logger(__name__)

EXTRACTION_FAILED_CODE = "EXTRACTION_FAILED"


@dataclass
class SourceUpload:
    """One source as submitted, before text extraction."""

    file_name: str
    mime_type: Optional[str] = None
    raw_text: Optional[str] = None
    data: Optional[bytes] = None
    size_bytes: Optional[int] = None


class JobDispatcher(Protocol):
    """Hands a job to the background worker pool."""

    async def dispatch(self, job_id: str, enhanced: bool = False) -> str:
        ...


class ImportJobService(BaseService):
    """Starts, processes, retries and AI-enhances import jobs.

    ``execute`` (via ``start_import``) validates the submission and runs it.
    ``process_job`` is shared by the sync path, the background worker, retry
    and AI enhance.
    """

    def __init__(
        self,
        session: AsyncSession,
        pipeline: ImportPipeline,
        text_extractor: Optional[TextExtractionService] = None,
        worker_health: Optional[WorkerHealthCheck] = None,
        dispatcher: Optional[JobDispatcher] = None,
        import_settings: Optional[ImportSettings] = None,
    ):
        super().__init__()
        self.session = session
        self.repository = ImportJobRepository(session)
        self.pipeline = pipeline
        self.text_extractor = text_extractor or TextExtractionService()
        self.worker_health = worker_health
        self.dispatcher = dispatcher
        self.config = import_settings or app_settings.imports

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def start_import(
        self,
        org_id: str,
        sources: Sequence[SourceUpload],
        force_background: bool = False,
        created_by: Optional[str] = None,
    ) -> ImportJob:
        """Submit an import.

        Args:
            org_id: Owning organization
            sources: Submitted sources
            force_background: Queue for the worker regardless of size
            created_by: Authenticated user id

        Returns:
            The job; already processed when it ran synchronously

        Raises:
            ValidationError: If org_id or sources are missing
            WorkerUnavailableError: If background work cannot be queued
        """
        return await self.execute(
            org_id, sources, force_background=force_background, created_by=created_by
        )

    def validate(self, org_id, sources, **kwargs):
        if not org_id or not str(org_id).strip():
            raise ValidationError("org_id is required")
        if not sources:
            raise ValidationError("At least one source is required")
        for upload in sources:
            if not upload.file_name:
                raise ValidationError("Every source needs a file_name")
            if upload.raw_text is None and upload.data is None:
                raise ValidationError(f"Source {upload.file_name} has neither text nor file data")

    async def run(
        self,
        org_id: str,
        sources: Sequence[SourceUpload],
        force_background: bool = False,
        created_by: Optional[str] = None,
    ) -> ImportJob:
        raw_sources, warnings = await self._capture_sources(sources)
        warnings.extend(
            low_text_warnings(
                raw_sources,
                min_words=self.config.low_text_min_words,
                min_words_per_page=self.config.low_text_min_words_per_page,
            )
        )
        warning_dicts = [w.to_dict() for w in warnings]

        if self._is_documents_only(raw_sources):
            job = await self.repository.create_job(
                org_id=org_id,
                sources=[s.to_dict() for s in raw_sources],
                created_by=created_by,
                warnings=warning_dicts,
            )
            return await self._complete_documents_only(job, raw_sources)

        background = should_background(
            raw_sources,
            force=force_background,
            source_threshold=self.config.background_source_threshold,
            word_threshold=self.config.background_word_threshold,
        )
        if background:
            await self._ensure_worker_available()

        job = await self.repository.create_job(
            org_id=org_id,
            sources=[s.to_dict() for s in raw_sources],
            created_by=created_by,
            warnings=warning_dicts,
        )

        if background:
            await self._dispatch(job, enhanced=False)
            return job

        return await self.process_job(job.id)

    async def _capture_sources(self, uploads: Sequence[SourceUpload]):
        raw_sources: List[RawSource] = []
        failed: List[str] = []

        for upload in uploads:
            page_count = None
            flagged = False
            pasted = upload.raw_text is not None
            mime_type = resolve_mime_type(upload.file_name, upload.mime_type, pasted=pasted)
            if pasted:
                text = upload.raw_text
            else:
                extraction = await self.text_extractor.extract(
                    upload.data or b"", mime_type, upload.file_name
                )
                text, page_count, flagged = extraction.text, extraction.page_count, extraction.is_low_text
                if extraction.error:
                    failed.append(upload.file_name)

            raw_sources.append(
                RawSource(
                    id=str(uuid.uuid4()),
                    file_name=upload.file_name,
                    raw_text=text,
                    mime_type=mime_type,
                    size_bytes=upload.size_bytes if upload.size_bytes is not None else len(upload.data or b""),
                    page_count=page_count,
                    word_count=count_words(text),
                    is_low_text=flagged,
                )
            )

        warnings: List[ImportWarning] = []
        if failed:
            warnings.append(
                ImportWarning(
                    code=EXTRACTION_FAILED_CODE,
                    message="Text extraction failed for one or more documents.",
                    sources=failed,
                )
            )
        return raw_sources, warnings

    @staticmethod
    def _is_documents_only(sources: Sequence[RawSource]) -> bool:
        """No text anywhere, but at least one non-text attachment."""
        return not any(s.has_text for s in sources) and any(not s.is_text_mime for s in sources)

    async def _complete_documents_only(
        self, job: ImportJob, sources: Sequence[RawSource]
    ) -> ImportJob:
        """Short-circuit a job whose sources hold attachments but no text."""
        parsed_json = {
            "candidates": [],
            "documents": self._documents(sources),
            "warnings": list(job.warnings or []),
            "source": "documents_only",
        }
        job = await self.repository.update_job(
            job.id,
            status=ImportStatus.COMPLETED,
            progress_stage=ProgressStage.COMPLETED,
            parsed_json=parsed_json,
            confidence_map={},
            duplicate_matches=[],
            errors=[],
            extraction_mode=ExtractionMode.HEURISTIC,
            error_message=None,
        )
        get_job_logger(LOGGER, job.id, job.org_id).info(
            "Import completed as documents only, no extractable text",
            extra={"document_count": len(parsed_json["documents"])},
        )
        return job

    @staticmethod
    def _documents(sources: Sequence[RawSource]) -> List[Dict[str, Any]]:
        return [
            ImportedDocument(
                id=s.id,
                file_name=s.file_name,
                file_size=s.size_bytes,
                category=infer_document_category(s.file_name),
            ).to_dict()
            for s in sources
            if not s.is_text_mime
        ]

    # ------------------------------------------------------------------
    # Background dispatch
    # ------------------------------------------------------------------

    async def _ensure_worker_available(self) -> None:
        if self.worker_health is None or self.dispatcher is None:
            raise WorkerUnavailableError("Background import processing is not configured")
        await self.worker_health.ensure_available()

    async def _dispatch(self, job: ImportJob, enhanced: bool) -> None:
        """Start the background run; a failed hand-off fails the job."""
        job_logger = get_job_logger(LOGGER, job.id, job.org_id)
        try:
            workflow_id = await self.dispatcher.dispatch(str(job.id), enhanced=enhanced)
        except Exception as e:
            job_logger.error(f"Failed to dispatch import job: {e}", exc_info=True)
            await self.repository.update_job(
                job.id,
                status=ImportStatus.FAILED,
                progress_stage=ProgressStage.FAILED,
                error_message=f"Failed to queue background processing: {e}",
            )
            raise WorkerUnavailableError(
                "Background import worker is unavailable. The job was marked as failed.",
                original_error=e,
            )
        job_logger.info(f"Queued import job as workflow {workflow_id}", extra={"enhanced": enhanced})

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def process_job(self, job_id: Any, enhanced: bool = False) -> ImportJob:
        """Run the pipeline for a job and persist the outcome.

        Pipeline failures end in ``failed`` with ``error_message`` set; they
        are not raised.

        Args:
            job_id: Job to process
            enhanced: Add the full-text AI pass

        Returns:
            The updated job

        Raises:
            ImportJobNotFoundError: If the job does not exist
            ConcurrentJobUpdateError: If another writer changed the job meanwhile
        """
        job = await self.repository.get_job(job_id)
        if job is None:
            raise ImportJobNotFoundError(f"Import job {job_id} not found")

        job_logger = get_job_logger(LOGGER, job.id, job.org_id)
        job = await self.repository.update_job(
            job.id,
            status=ImportStatus.PROCESSING,
            progress_stage=ProgressStage.EXTRACTING_FACTS,
            error_message=None,
        )

        async def on_stage(stage: ProgressStage) -> None:
            if job.progress_stage != stage.value:
                await self.repository.update_job(job.id, progress_stage=stage)

        sources = [RawSource.from_dict(s) for s in job.sources or []]
        if self._is_documents_only(sources):
            return await self._complete_documents_only(job, sources)

        try:
            result = await self.pipeline.run(job.org_id, sources, enhanced=enhanced, on_stage=on_stage)
        except Exception as e:
            job_logger.error(f"Import pipeline failed: {e}", exc_info=True)
            return await self.repository.update_job(
                job.id,
                status=ImportStatus.FAILED,
                progress_stage=ProgressStage.FAILED,
                error_message=str(e),
                errors=[f"Import pipeline failed: {e}"],
            )

        status = ImportStatus.NEEDS_REVIEW if result.needs_review else ImportStatus.COMPLETED
        parsed_json = {
            "candidates": [c.to_dict() for c in result.candidates],
            "documents": self._documents(sources),
            "source": result.source_tag,
        }
        job = await self.repository.update_job(
            job.id,
            status=status,
            progress_stage=ProgressStage.COMPLETED,
            parsed_json=parsed_json,
            confidence_map=result.confidence_map,
            duplicate_matches=result.duplicate_matches,
            errors=list(result.errors),
            extraction_mode=result.extraction_mode,
            error_message=None,
        )
        job_logger.info(
            f"Import job finished with status {status.value}",
            extra={
                "candidate_count": len(result.candidates),
                "error_count": len(result.errors),
                "extraction_mode": result.extraction_mode.value,
            },
        )
        return job

    # ------------------------------------------------------------------
    # Lookup / retry / AI enhance
    # ------------------------------------------------------------------

    async def get_job(self, job_id: Any, org_id: str) -> ImportJob:
        """Fetch an organization's job.

        Raises:
            ValidationError: If org_id is missing
            ImportJobNotFoundError: If the job is not this organization's
        """
        if not org_id:
            raise ValidationError("org_id is required")
        job = await self.repository.get_job(job_id, org_id=org_id)
        if job is None:
            raise ImportJobNotFoundError(f"Import job {job_id} not found")
        return job

    async def list_jobs(self, org_id: str, limit: int = 50, offset: int = 0) -> List[ImportJob]:
        """Import history for an organization, newest first.

        Raises:
            ValidationError: If org_id is missing
        """
        if not org_id:
            raise ValidationError("org_id is required")
        return await self.repository.list_jobs(org_id, limit=limit, offset=offset)

    async def retry(self, job_id: Any, org_id: str) -> ImportJob:
        """Re-run the pipeline over the stored sources.

        Raises:
            ValidationError: If org_id is missing
            ImportJobNotFoundError: If the job is not this organization's
            JobStateError: If the job is currently processing
            ConcurrentJobUpdateError: If another retry got there first
            WorkerUnavailableError: If a background re-run cannot be queued
        """
        return await self._rerun(job_id, org_id, enhanced=False)

    async def ai_enhance(self, job_id: Any, org_id: str) -> ImportJob:
        """Re-run the pipeline with the AI pass over the full normalized text."""
        return await self._rerun(job_id, org_id, enhanced=True)

    async def _rerun(self, job_id: Any, org_id: str, enhanced: bool) -> ImportJob:
        if not org_id:
            raise ValidationError("org_id is required")

        job = await self.repository.get_job(job_id, org_id=org_id)
        if job is None:
            raise ImportJobNotFoundError(f"Import job {job_id} not found")
        if ImportStatus(job.status) not in RETRYABLE_STATUSES:
            raise JobStateError(f"Import job {job_id} is already processing")

        sources = [RawSource.from_dict(s) for s in job.sources or []]
        background = should_background(
            sources,
            source_threshold=self.config.background_source_threshold,
            word_threshold=self.config.background_word_threshold,
        )
        if background:
            await self._ensure_worker_available()

        job = await self.repository.update_job(
            job.id,
            expected_version=job.version,
            org_id=org_id,
            previous_attempts=list(job.previous_attempts or []) + [self._snapshot(job)],
            status=ImportStatus.PROCESSING,
            progress_stage=ProgressStage.QUEUED,
            error_message=None,
        )
        get_job_logger(LOGGER, job.id, org_id).info(
            f"{'AI enhance' if enhanced else 'Retry'} started",
            extra={"attempt": len(job.previous_attempts) + 1, "background": background},
        )

        if background:
            await self._dispatch(job, enhanced=enhanced)
            return job
        return await self.process_job(job.id, enhanced=enhanced)

    @staticmethod
    def _snapshot(job: ImportJob) -> Dict[str, Any]:
        return {
            "parsed_json": job.parsed_json,
            "confidence_map": job.confidence_map,
            "duplicate_matches": job.duplicate_matches,
            "errors": list(job.errors or []),
            "warnings": list(job.warnings or []),
            "status": job.status,
            "extraction_mode": job.extraction_mode,
            "error_message": job.error_message,
            "retried_at": datetime.now(timezone.utc).isoformat(),
        }


def build_import_pipeline(
    session: AsyncSession,
    config: Optional[Settings] = None,
    venue_cache: Optional[VenueCache] = None,
) -> ImportPipeline:
    """Wire the pipeline stages from settings."""
    config = config or app_settings
    imports = config.imports

    llm_client = create_llm_client(config.llm)
    ai_extractor = AIFieldExtractor(llm_client, temperature=config.llm.temperature) if llm_client else None

    record_source = OrganizationRecordRepository(session)
    return ImportPipeline(
        chunker=SourceChunker(
            max_tokens=imports.chunk_max_tokens,
            min_tokens=imports.chunk_min_tokens,
            overlap_tokens=imports.chunk_overlap_tokens,
        ),
        fact_extractor=FactExtractor(
            PatternExtractor(imports.known_cities),
            ai_extractor=ai_extractor,
            ai_timeout_seconds=config.llm.timeout_seconds,
            chunk_ai_pass=config.llm.enable_chunk_ai_pass,
        ),
        resolver=FactResolver(
            acceptance_threshold=imports.acceptance_threshold,
            ambiguity_epsilon=imports.ambiguity_epsilon,
            repetition_boost=imports.repetition_boost,
            max_repetition_boost=imports.max_repetition_boost,
        ),
        duplicate_matcher=DuplicateMatcher(
            record_source,
            venue_cache=venue_cache
            or VenueCache(record_source.list_venues, ttl_seconds=imports.venue_cache_ttl_seconds),
            min_score=imports.duplicate_min_score,
            top_n=imports.duplicate_top_n,
            date_window_days=imports.duplicate_date_window_days,
        ),
        concurrency=imports.extraction_concurrency,
    )
