"""ImportJobService tests: submission, documents-only, background and retry paths."""

from unittest.mock import AsyncMock, Mock

import httpx
import pytest
from sqlalchemy import func, select

from show_import.core.config import ImportSettings
from show_import.core.llm_client import OpenRouterClient
from show_import.core.exceptions import (
    ImportJobNotFoundError,
    JobStateError,
    ValidationError,
    WorkerUnavailableError,
)
from show_import.database.models import ImportJob
from show_import.models.import_models import ImportStatus
from show_import.services.chunking import SourceChunker
from show_import.services.duplicates import DuplicateMatcher, ShowRecord
from show_import.services.extraction import AIFieldExtractor, FactExtractor, PatternExtractor
from show_import.services.imports import ImportJobService, ImportPipeline, SourceUpload
from show_import.services.resolution import FactResolver
from show_import.services.text_extraction_service import TextExtractionResult

ADVANCE = "Show: Summer Fest\nDate: July 15, 2025\nVenue: Ryman\nCity: Nashville"


class InMemoryShows:
    def __init__(self, shows=()):
        self.shows = list(shows)

    async def list_shows(self, org_id):
        return self.shows

    async def list_venues(self, org_id):
        return []


@pytest.fixture
def records():
    return InMemoryShows()


@pytest.fixture
def text_extractor():
    extractor = Mock()
    extractor.extract = AsyncMock(return_value=TextExtractionResult(is_low_text=True))
    return extractor


@pytest.fixture
def worker_health():
    health = Mock()
    health.ensure_available = AsyncMock()
    return health


@pytest.fixture
def dispatcher():
    dispatcher = Mock()
    dispatcher.dispatch = AsyncMock(return_value="import-job-1")
    return dispatcher


@pytest.fixture
def service(db_session, records, text_extractor, worker_health, dispatcher):
    pipeline = ImportPipeline(
        chunker=SourceChunker(),
        fact_extractor=FactExtractor(PatternExtractor(["Nashville"]), chunk_ai_pass=False),
        resolver=FactResolver(),
        duplicate_matcher=DuplicateMatcher(records),
    )
    return ImportJobService(
        db_session,
        pipeline,
        text_extractor=text_extractor,
        worker_health=worker_health,
        dispatcher=dispatcher,
        import_settings=ImportSettings(),
    )


async def _job_count(session) -> int:
    return await session.scalar(select(func.count()).select_from(ImportJob))


class TestStartImport:
    """Synchronous and documents-only submissions."""

    @pytest.mark.asyncio
    async def test_single_text_source_completes(self, service):
        job = await service.start_import(
            "org-1", [SourceUpload(file_name="email.txt", raw_text=ADVANCE)], created_by="user-1"
        )

        assert job.status == "completed"
        assert job.progress_stage == "completed"
        assert job.created_by == "user-1"
        assert job.extraction_mode == "heuristic"
        candidates = job.parsed_json["candidates"]
        assert len(candidates) == 1
        assert candidates[0]["title"] == "Summer Fest"
        assert job.parsed_json["source"] == "text"
        assert set(job.confidence_map) == {"candidate-0"}
        assert job.duplicate_matches == []
        assert job.warnings == []

    @pytest.mark.asyncio
    async def test_conflicting_sources_need_review(self, service):
        uploads = [
            SourceUpload(file_name="email.txt", raw_text=ADVANCE),
            SourceUpload(file_name="notes.txt", raw_text="Date: July 16, 2025"),
        ]

        job = await service.start_import("org-1", uploads)

        assert job.status == "needs_review"
        assert job.parsed_json["candidates"][0]["date"] is None

    @pytest.mark.asyncio
    async def test_existing_show_needs_review(self, service, records):
        records.shows.append(
            ShowRecord(id="show-1", title="Summer Fest", date="2025-07-15", city="Nashville", venue_name="Ryman")
        )

        job = await service.start_import("org-1", [SourceUpload(file_name="email.txt", raw_text=ADVANCE)])

        assert job.status == "needs_review"
        assert job.duplicate_matches[0]["candidate_id"] == "candidate-0"
        assert job.duplicate_matches[0]["matched_entity_id"] == "show-1"

    @pytest.mark.asyncio
    async def test_documents_only_import(self, service, text_extractor, worker_health):
        upload = SourceUpload(file_name="scan.pdf", mime_type="application/pdf", data=b"%PDF-1.4 scanned")

        job = await service.start_import("org-1", [upload], force_background=True)

        assert job.status == "completed"
        assert job.parsed_json["candidates"] == []
        assert job.parsed_json["source"] == "documents_only"
        documents = job.parsed_json["documents"]
        assert len(documents) == 1
        assert documents[0]["file_name"] == "scan.pdf"
        assert documents[0]["file_size"] == len(b"%PDF-1.4 scanned")
        assert [w["code"] for w in job.warnings] == ["LOW_TEXT"]
        assert job.warnings[0]["sources"] == ["scan.pdf"]
        text_extractor.extract.assert_awaited_once()
        worker_health.ensure_available.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_scan_without_declared_type_is_a_document(self, service, text_extractor):
        upload = SourceUpload(file_name="scan.pdf", data=b"%PDF-1.4 scanned")

        job = await service.start_import("org-1", [upload])

        assert job.status == "completed"
        assert job.parsed_json["source"] == "documents_only"
        assert job.parsed_json["candidates"] == []
        assert [d["file_name"] for d in job.parsed_json["documents"]] == ["scan.pdf"]
        assert [w["code"] for w in job.warnings] == ["LOW_TEXT"]
        assert job.sources[0]["mime_type"] == "application/pdf"
        args = text_extractor.extract.await_args.args
        assert args[1] == "application/pdf"

    @pytest.mark.asyncio
    async def test_failed_text_extraction_warns(self, service, text_extractor):
        text_extractor.extract.return_value = TextExtractionResult(is_low_text=True, error="broken xref")
        upload = SourceUpload(file_name="contract.pdf", mime_type="application/pdf", data=b"garbage")

        job = await service.start_import("org-1", [upload])

        assert [w["code"] for w in job.warnings] == ["EXTRACTION_FAILED", "LOW_TEXT"]
        assert job.parsed_json["documents"][0]["category"] == "contract"

    @pytest.mark.asyncio
    async def test_attachment_next_to_text_is_listed(self, service):
        uploads = [
            SourceUpload(file_name="email.txt", raw_text=ADVANCE),
            SourceUpload(file_name="tech_rider.pdf", mime_type="application/pdf", data=b"%PDF"),
        ]

        job = await service.start_import("org-1", uploads)

        assert job.parsed_json["candidates"][0]["title"] == "Summer Fest"
        assert job.parsed_json["documents"][0]["category"] == "rider"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "org_id,uploads",
        [
            ("", [SourceUpload(file_name="email.txt", raw_text=ADVANCE)]),
            ("org-1", []),
            ("org-1", [SourceUpload(file_name="email.txt")]),
            ("org-1", [SourceUpload(file_name="", raw_text=ADVANCE)]),
        ],
    )
    async def test_invalid_submissions(self, service, db_session, org_id, uploads):
        with pytest.raises(ValidationError):
            await service.start_import(org_id, uploads)

        assert await _job_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_pipeline_failure_marks_job_failed(self, service, records):
        records.list_shows = AsyncMock(side_effect=RuntimeError("connection reset"))

        job = await service.start_import("org-1", [SourceUpload(file_name="email.txt", raw_text=ADVANCE)])

        assert job.status == "failed"
        assert job.progress_stage == "failed"
        assert "connection reset" in job.error_message


class TestBackgroundImport:
    """Queueing large or forced imports for the worker."""

    @pytest.mark.asyncio
    async def test_forced_background_is_queued(self, service, dispatcher):
        job = await service.start_import(
            "org-1", [SourceUpload(file_name="email.txt", raw_text=ADVANCE)], force_background=True
        )

        assert job.status == "pending"
        assert job.parsed_json is None
        dispatcher.dispatch.assert_awaited_once_with(str(job.id), enhanced=False)

    @pytest.mark.asyncio
    async def test_many_sources_are_queued(self, service, dispatcher):
        uploads = [SourceUpload(file_name=f"email-{i}.txt", raw_text=ADVANCE) for i in range(3)]

        job = await service.start_import("org-1", uploads)

        assert job.status == "pending"
        assert len(job.sources) == 3
        dispatcher.dispatch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unhealthy_worker_rejects_without_creating_job(
        self, service, worker_health, dispatcher, db_session
    ):
        worker_health.ensure_available.side_effect = WorkerUnavailableError("no workers")
        uploads = [SourceUpload(file_name=f"email-{i}.txt", raw_text=ADVANCE) for i in range(3)]

        with pytest.raises(WorkerUnavailableError):
            await service.start_import("org-1", uploads)

        assert await _job_count(db_session) == 0
        dispatcher.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unconfigured_worker_rejects(self, db_session, service):
        service.worker_health = None

        with pytest.raises(WorkerUnavailableError):
            await service.start_import(
                "org-1", [SourceUpload(file_name="email.txt", raw_text=ADVANCE)], force_background=True
            )

    @pytest.mark.asyncio
    async def test_dispatch_failure_fails_the_job(self, service, dispatcher, db_session):
        dispatcher.dispatch.side_effect = RuntimeError("temporal unreachable")

        with pytest.raises(WorkerUnavailableError):
            await service.start_import(
                "org-1", [SourceUpload(file_name="email.txt", raw_text=ADVANCE)], force_background=True
            )

        job = (await db_session.execute(select(ImportJob))).scalar_one()
        assert job.status == "failed"
        assert "temporal unreachable" in job.error_message

    @pytest.mark.asyncio
    async def test_worker_processes_queued_job(self, service):
        queued = await service.start_import(
            "org-1", [SourceUpload(file_name="email.txt", raw_text=ADVANCE)], force_background=True
        )

        job = await service.process_job(str(queued.id))

        assert job.status == "completed"
        assert job.parsed_json["candidates"][0]["venue_name"] == "Ryman"

    @pytest.mark.asyncio
    async def test_process_missing_job(self, service):
        with pytest.raises(ImportJobNotFoundError):
            await service.process_job("7f9c1a52-0000-4000-8000-000000000000")


class TestRetryAndEnhance:
    """Re-runs snapshot the previous result."""

    @pytest.mark.asyncio
    async def test_retry_from_needs_review(self, service, records):
        records.shows.append(
            ShowRecord(id="show-1", title="Summer Fest", date="2025-07-15", city="Nashville", venue_name="Ryman")
        )
        job = await service.start_import("org-1", [SourceUpload(file_name="email.txt", raw_text=ADVANCE)])
        assert job.status == "needs_review"

        retried = await service.retry(job.id, "org-1")

        assert retried.status == "needs_review"
        assert len(retried.previous_attempts) == 1
        snapshot = retried.previous_attempts[0]
        assert snapshot["status"] == "needs_review"
        assert snapshot["duplicate_matches"][0]["matched_entity_id"] == "show-1"

        again = await service.retry(job.id, "org-1")

        assert len(again.previous_attempts) == 2

    @pytest.mark.asyncio
    async def test_ai_enhance_without_model_keeps_heuristic_result(self, service):
        job = await service.start_import("org-1", [SourceUpload(file_name="email.txt", raw_text=ADVANCE)])

        enhanced = await service.ai_enhance(job.id, "org-1")

        assert enhanced.status == "completed"
        assert enhanced.extraction_mode == "heuristic"
        assert "AI-assisted extraction is not configured" in enhanced.errors
        assert len(enhanced.previous_attempts) == 1

    @pytest.mark.asyncio
    async def test_ai_enhance_with_gateway_page_degrades(self, service):
        gateway = httpx.MockTransport(
            lambda request: httpx.Response(200, text="<html>gateway</html>", headers={"content-type": "text/html"})
        )
        llm = OpenRouterClient(api_key="sk-test", model="test/model", max_retries=1, transport=gateway)
        service.pipeline.fact_extractor.ai_extractor = AIFieldExtractor(llm)
        job = await service.start_import("org-1", [SourceUpload(file_name="email.txt", raw_text=ADVANCE)])

        enhanced = await service.ai_enhance(job.id, "org-1")

        assert enhanced.status == "completed"
        assert enhanced.extraction_mode == "heuristic"
        assert enhanced.parsed_json["candidates"][0]["title"] == "Summer Fest"
        assert any("Invalid response format" in error for error in enhanced.errors)

    @pytest.mark.asyncio
    async def test_retry_while_processing_is_rejected(self, service):
        job = await service.repository.create_job(org_id="org-1", sources=[])
        await service.repository.update_job(job.id, status=ImportStatus.PROCESSING)

        with pytest.raises(JobStateError):
            await service.retry(job.id, "org-1")

    @pytest.mark.asyncio
    async def test_retry_requires_org(self, service):
        job = await service.start_import("org-1", [SourceUpload(file_name="email.txt", raw_text=ADVANCE)])

        with pytest.raises(ValidationError):
            await service.retry(job.id, "")

    @pytest.mark.asyncio
    async def test_retry_other_organizations_job(self, service):
        job = await service.start_import("org-1", [SourceUpload(file_name="email.txt", raw_text=ADVANCE)])

        with pytest.raises(ImportJobNotFoundError):
            await service.ai_enhance(job.id, "org-2")

    @pytest.mark.asyncio
    async def test_large_retry_goes_to_background(self, service, dispatcher):
        uploads = [SourceUpload(file_name=f"email-{i}.txt", raw_text=ADVANCE) for i in range(3)]
        job = await service.start_import("org-1", uploads)
        await service.process_job(job.id)
        dispatcher.dispatch.reset_mock()

        queued = await service.ai_enhance(job.id, "org-1")

        assert queued.status == "processing"
        assert queued.progress_stage == "queued"
        dispatcher.dispatch.assert_awaited_once_with(str(job.id), enhanced=True)


class TestGetJob:
    @pytest.mark.asyncio
    async def test_jobs_are_scoped_to_organization(self, service):
        job = await service.start_import("org-1", [SourceUpload(file_name="email.txt", raw_text=ADVANCE)])

        assert (await service.get_job(job.id, "org-1")).id == job.id
        with pytest.raises(ImportJobNotFoundError):
            await service.get_job(job.id, "org-2")

    @pytest.mark.asyncio
    async def test_org_is_required(self, service):
        with pytest.raises(ValidationError):
            await service.get_job("7f9c1a52-0000-4000-8000-000000000000", "")


class TestListJobs:
    @pytest.mark.asyncio
    async def test_history_is_scoped_to_organization(self, service):
        first = await service.start_import("org-1", [SourceUpload(file_name="email.txt", raw_text=ADVANCE)])
        second = await service.start_import("org-1", [SourceUpload(file_name="notes.txt", raw_text=ADVANCE)])
        await service.start_import("org-2", [SourceUpload(file_name="other.txt", raw_text=ADVANCE)])

        jobs = await service.list_jobs("org-1")

        assert {job.id for job in jobs} == {first.id, second.id}
        assert all(job.org_id == "org-1" for job in jobs)

    @pytest.mark.asyncio
    async def test_org_is_required(self, service):
        with pytest.raises(ValidationError):
            await service.list_jobs("")
