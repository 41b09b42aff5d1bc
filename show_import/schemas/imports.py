"""Request and response models for the imports API."""

import base64
import binascii
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SourcePayload(BaseModel):
    """One submitted source. Either ``raw_text`` or ``file_data`` is required."""

    file_name: str = Field(..., min_length=1, description="Original file name")
    mime_type: Optional[str] = Field(default=None, description="MIME type of the upload")
    raw_text: Optional[str] = Field(default=None, description="Pasted or already extracted text")
    file_data: Optional[str] = Field(default=None, description="Base64 encoded file contents")
    size_bytes: Optional[int] = Field(default=None, ge=0)

    @field_validator("file_data")
    @classmethod
    def check_base64(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("file_data must be base64 encoded")
        return value

    def decoded_data(self) -> Optional[bytes]:
        if self.file_data is None:
            return None
        return base64.b64decode(self.file_data)


class StartImportRequest(BaseModel):
    org_id: Optional[str] = Field(default=None, description="Owning organization")
    sources: List[SourcePayload] = Field(default_factory=list)
    force_background: bool = Field(default=False, description="Queue for the worker regardless of size")


class RerunImportRequest(BaseModel):
    org_id: str = Field(..., min_length=1, description="Owning organization")


class ImportJobResponse(BaseModel):
    """Client view of an import job."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: str
    status: str
    progress_stage: Optional[str] = None
    extraction_mode: Optional[str] = None
    parsed_json: Optional[Dict[str, Any]] = None
    confidence_map: Optional[Dict[str, Any]] = None
    duplicate_matches: Optional[List[Dict[str, Any]]] = None
    errors: List[Any] = Field(default_factory=list)
    warnings: List[Dict[str, Any]] = Field(default_factory=list)
    previous_attempts: List[Dict[str, Any]] = Field(default_factory=list)
    error_message: Optional[str] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SourceSummary(BaseModel):
    file_name: str
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None
    word_count: int = 0


class ImportHistoryItem(BaseModel):
    """One row of an organization's import history."""

    id: UUID
    status: str
    progress_stage: Optional[str] = None
    extraction_mode: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    sources: List[SourceSummary] = Field(default_factory=list)
    candidate_count: int = 0
    errors: List[Any] = Field(default_factory=list)

    @classmethod
    def from_job(cls, job: Any) -> "ImportHistoryItem":
        candidates = (job.parsed_json or {}).get("candidates")
        return cls(
            id=job.id,
            status=job.status,
            progress_stage=job.progress_stage,
            extraction_mode=job.extraction_mode,
            created_at=job.created_at,
            updated_at=job.updated_at,
            sources=[
                SourceSummary(
                    file_name=source.get("file_name") or "",
                    mime_type=source.get("mime_type"),
                    size_bytes=source.get("size_bytes"),
                    word_count=int(source.get("word_count") or 0),
                )
                for source in job.sources or []
            ],
            candidate_count=len(candidates) if isinstance(candidates, list) else 0,
            errors=list(job.errors or []),
        )


class ImportHistoryResponse(BaseModel):
    org_id: str
    jobs: List[ImportHistoryItem] = Field(default_factory=list)


class WorkerHeartbeatRequest(BaseModel):
    worker_id: str = Field(..., min_length=1, description="Stable id of the reporting worker")


class WorkerHealthResponse(BaseModel):
    healthy: bool
    active_workers: int
    workers: List[str] = Field(default_factory=list)
