"""Tests for the import job endpoints."""

import base64
import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from show_import.api.deps import get_import_job_service
from show_import.core.exceptions import (
    ConcurrentJobUpdateError,
    ImportJobNotFoundError,
    JobStateError,
    PipelineError,
    ValidationError,
    WorkerUnavailableError,
)
from show_import.main import app

AUTH = {"X-User-Id": "user-1"}


def _job(**overrides) -> SimpleNamespace:
    values = dict(
        id=uuid.uuid4(),
        org_id="org-1",
        status="completed",
        progress_stage="completed",
        extraction_mode="heuristic",
        parsed_json={"candidates": [{"candidate_id": "candidate-0", "title": "Summer Fest"}]},
        confidence_map={"candidate-0": {"event_title": 0.9}},
        duplicate_matches=[],
        errors=[],
        warnings=[],
        previous_attempts=[],
        sources=[],
        error_message=None,
        version=3,
        created_at=None,
        updated_at=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def import_service() -> AsyncMock:
    service = AsyncMock()
    app.dependency_overrides[get_import_job_service] = lambda: service
    return service


class TestStartImportEndpoint:
    """POST /api/v1/imports/start"""

    def test_inline_import_returns_processed_job(self, test_client: TestClient, import_service) -> None:
        job = _job()
        import_service.start_import.return_value = job

        response = test_client.post(
            "/api/v1/imports/start",
            json={"org_id": "org-1", "sources": [{"file_name": "email.txt", "raw_text": "Show: Summer Fest"}]},
            headers=AUTH,
        )

        assert response.status_code == 202
        body = response.json()
        assert body["status"] is True
        assert body["message"] == "Import job processed"
        assert body["data"]["id"] == str(job.id)
        assert body["data"]["parsed_json"]["candidates"][0]["title"] == "Summer Fest"
        assert body["meta"]["request_id"] == response.headers["X-Correlation-ID"]

        args, kwargs = import_service.start_import.await_args
        assert args[0] == "org-1"
        assert args[1][0].file_name == "email.txt"
        assert args[1][0].raw_text == "Show: Summer Fest"
        assert kwargs == {"force_background": False, "created_by": "user-1"}

    def test_background_import_is_queued(self, test_client: TestClient, import_service) -> None:
        import_service.start_import.return_value = _job(status="pending", progress_stage="queued", parsed_json=None)

        response = test_client.post(
            "/api/v1/imports/start",
            json={"org_id": "org-1", "sources": [{"file_name": "a.txt", "raw_text": "x"}], "force_background": True},
            headers=AUTH,
        )

        assert response.status_code == 202
        assert response.json()["message"] == "Import job queued"
        assert response.json()["data"]["status"] == "pending"

    def test_file_data_is_decoded(self, test_client: TestClient, import_service) -> None:
        import_service.start_import.return_value = _job()
        encoded = base64.b64encode(b"%PDF-1.4").decode()

        test_client.post(
            "/api/v1/imports/start",
            json={
                "org_id": "org-1",
                "sources": [{"file_name": "rider.pdf", "mime_type": "application/pdf", "file_data": encoded}],
            },
            headers=AUTH,
        )

        upload = import_service.start_import.await_args.args[1][0]
        assert upload.data == b"%PDF-1.4"
        assert upload.raw_text is None

    def test_invalid_base64_is_rejected(self, test_client: TestClient, import_service) -> None:
        response = test_client.post(
            "/api/v1/imports/start",
            json={"org_id": "org-1", "sources": [{"file_name": "rider.pdf", "file_data": "%%%not base64"}]},
            headers=AUTH,
        )

        assert response.status_code == 422
        import_service.start_import.assert_not_awaited()

    def test_requires_user(self, test_client: TestClient, import_service) -> None:
        response = test_client.post(
            "/api/v1/imports/start",
            json={"org_id": "org-1", "sources": [{"file_name": "a.txt", "raw_text": "x"}]},
        )

        assert response.status_code == 401
        import_service.start_import.assert_not_awaited()

    @pytest.mark.parametrize(
        "error,status_code,code",
        [
            (ValidationError("At least one source is required"), 400, "VALIDATION_ERROR"),
            (WorkerUnavailableError("no workers"), 503, "WORKER_UNAVAILABLE"),
            (PipelineError("boom"), 500, "PIPELINE_ERROR"),
        ],
    )
    def test_service_errors_are_mapped(
        self, test_client: TestClient, import_service, error, status_code, code
    ) -> None:
        import_service.start_import.side_effect = error

        response = test_client.post(
            "/api/v1/imports/start",
            json={"org_id": "org-1", "sources": []},
            headers=AUTH,
        )

        assert response.status_code == status_code
        detail = response.json()["detail"]
        assert detail["code"] == code
        assert detail["status"] == status_code
        assert detail["detail"] == error.message
        assert detail["instance"] == "/api/v1/imports/start"


class TestImportHistoryEndpoint:
    """GET /api/v1/imports"""

    def test_lists_organization_history(self, test_client: TestClient, import_service) -> None:
        failed = _job(
            status="failed",
            parsed_json=None,
            errors=["Pipeline failed"],
            sources=[{"id": "src-2", "file_name": "rider.pdf", "mime_type": "application/pdf", "size_bytes": 2048}],
        )
        completed = _job(
            sources=[{"id": "src-1", "file_name": "email.txt", "mime_type": "text/plain", "word_count": 12}],
        )
        import_service.list_jobs.return_value = [failed, completed]

        response = test_client.get(
            "/api/v1/imports", params={"org_id": "org-1", "limit": 10, "offset": 5}, headers=AUTH
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Import history retrieved"
        assert body["data"]["org_id"] == "org-1"
        jobs = body["data"]["jobs"]
        assert [job["id"] for job in jobs] == [str(failed.id), str(completed.id)]
        assert jobs[0]["candidate_count"] == 0
        assert jobs[0]["errors"] == ["Pipeline failed"]
        assert jobs[0]["sources"][0] == {
            "file_name": "rider.pdf",
            "mime_type": "application/pdf",
            "size_bytes": 2048,
            "word_count": 0,
        }
        assert jobs[1]["candidate_count"] == 1
        assert jobs[1]["sources"][0]["word_count"] == 12
        assert "raw_text" not in jobs[1]["sources"][0]
        import_service.list_jobs.assert_awaited_once_with("org-1", limit=10, offset=5)

    def test_empty_history(self, test_client: TestClient, import_service) -> None:
        import_service.list_jobs.return_value = []

        response = test_client.get("/api/v1/imports", params={"org_id": "org-9"}, headers=AUTH)

        assert response.status_code == 200
        assert response.json()["data"]["jobs"] == []
        import_service.list_jobs.assert_awaited_once_with("org-9", limit=50, offset=0)

    def test_requires_user(self, test_client: TestClient, import_service) -> None:
        response = test_client.get("/api/v1/imports", params={"org_id": "org-1"})

        assert response.status_code == 401
        import_service.list_jobs.assert_not_awaited()

    def test_requires_org(self, test_client: TestClient, import_service) -> None:
        response = test_client.get("/api/v1/imports", headers=AUTH)

        assert response.status_code == 422
        import_service.list_jobs.assert_not_awaited()

    def test_limit_is_bounded(self, test_client: TestClient, import_service) -> None:
        response = test_client.get("/api/v1/imports", params={"org_id": "org-1", "limit": 1000}, headers=AUTH)

        assert response.status_code == 422


class TestImportJobEndpoints:
    """GET, retry and AI enhance on an existing job."""

    def test_get_job(self, test_client: TestClient, import_service) -> None:
        job = _job(status="needs_review")
        import_service.get_job.return_value = job

        response = test_client.get(f"/api/v1/imports/{job.id}", params={"org_id": "org-1"}, headers=AUTH)

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "needs_review"
        import_service.get_job.assert_awaited_once_with(job.id, "org-1")

    def test_get_job_requires_org(self, test_client: TestClient, import_service) -> None:
        response = test_client.get(f"/api/v1/imports/{uuid.uuid4()}", headers=AUTH)

        assert response.status_code == 422

    def test_get_missing_job(self, test_client: TestClient, import_service) -> None:
        import_service.get_job.side_effect = ImportJobNotFoundError("Import job not found")

        response = test_client.get(f"/api/v1/imports/{uuid.uuid4()}", params={"org_id": "org-2"}, headers=AUTH)

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "JOB_NOT_FOUND"

    def test_malformed_job_id(self, test_client: TestClient, import_service) -> None:
        response = test_client.get("/api/v1/imports/not-a-uuid", params={"org_id": "org-1"}, headers=AUTH)

        assert response.status_code == 422

    def test_retry(self, test_client: TestClient, import_service) -> None:
        job = _job(previous_attempts=[{"status": "failed"}])
        import_service.retry.return_value = job

        response = test_client.post(f"/api/v1/imports/{job.id}/retry", json={"org_id": "org-1"}, headers=AUTH)

        assert response.status_code == 200
        assert len(response.json()["data"]["previous_attempts"]) == 1
        import_service.retry.assert_awaited_once_with(job.id, "org-1")

    @pytest.mark.parametrize(
        "error,code",
        [
            (JobStateError("Import job is already processing"), "INVALID_JOB_STATE"),
            (ConcurrentJobUpdateError("changed meanwhile"), "CONCURRENT_UPDATE"),
        ],
    )
    def test_retry_conflicts(self, test_client: TestClient, import_service, error, code) -> None:
        import_service.retry.side_effect = error

        response = test_client.post(
            f"/api/v1/imports/{uuid.uuid4()}/retry", json={"org_id": "org-1"}, headers=AUTH
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == code

    def test_ai_enhance(self, test_client: TestClient, import_service) -> None:
        job = _job(extraction_mode="ai_assisted")
        import_service.ai_enhance.return_value = job

        response = test_client.post(f"/api/v1/imports/{job.id}/ai-enhance", json={"org_id": "org-1"}, headers=AUTH)

        assert response.status_code == 200
        assert response.json()["data"]["extraction_mode"] == "ai_assisted"
        import_service.ai_enhance.assert_awaited_once_with(job.id, "org-1")

    def test_rerun_requires_org(self, test_client: TestClient, import_service) -> None:
        response = test_client.post(f"/api/v1/imports/{uuid.uuid4()}/ai-enhance", json={}, headers=AUTH)

        assert response.status_code == 422

    def test_rerun_requires_user(self, test_client: TestClient, import_service) -> None:
        response = test_client.post(
            f"/api/v1/imports/{uuid.uuid4()}/retry", json={"org_id": "org-1"}, headers={"X-User-Id": "  "}
        )

        assert response.status_code == 401
