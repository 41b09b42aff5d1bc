from typing import Annotated, NoReturn
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from show_import.api.deps import get_import_job_service
from show_import.core.auth import get_current_user_id
from show_import.core.exceptions import (
    AppError,
    ImportJobNotFoundError,
    JobStateError,
    ValidationError,
    WorkerUnavailableError,
)
from show_import.schemas.common import ApiResponse
from show_import.schemas.imports import (
    ImportHistoryItem,
    ImportHistoryResponse,
    ImportJobResponse,
    RerunImportRequest,
    StartImportRequest,
)
from show_import.services.imports import ImportJobService, SourceUpload
from show_import.utils.logging import get_logger
from show_import.utils.responses import create_api_response, create_error_detail

LOGGER = get_logger(__name__)

router = APIRouter()

_ERROR_STATUS = (
    (ValidationError, status.HTTP_400_BAD_REQUEST, "Invalid Import Request"),
    (ImportJobNotFoundError, status.HTTP_404_NOT_FOUND, "Import Job Not Found"),
    (JobStateError, status.HTTP_409_CONFLICT, "Import Job Conflict"),
    (WorkerUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE, "Import Worker Unavailable"),
)


def _raise_http_error(error: AppError, request: Request) -> NoReturn:
    status_code, title = status.HTTP_500_INTERNAL_SERVER_ERROR, "Import Failed"
    for error_type, mapped_status, mapped_title in _ERROR_STATUS:
        if isinstance(error, error_type):
            status_code, title = mapped_status, mapped_title
            break

    if status_code >= 500:
        LOGGER.error(f"{title}: {error}", exc_info=True)
    error_detail = create_error_detail(
        title=title,
        status=status_code,
        detail=error.message,
        code=error.code,
        request=request,
    )
    raise HTTPException(status_code=status_code, detail=error_detail.model_dump(mode="json"))


@router.post(
    "/start",
    response_model=ApiResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start an import",
    operation_id="start_import",
)
async def start_import(
    request: Request,
    payload: StartImportRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    import_service: Annotated[ImportJobService, Depends(get_import_job_service)],
) -> ApiResponse:
    """Submit pasted text, CSV exports and documents for extraction.

    Small submissions are processed before the response; large ones are
    queued for the background worker and come back ``pending``.
    """
    uploads = [
        SourceUpload(
            file_name=source.file_name,
            mime_type=source.mime_type,
            raw_text=source.raw_text,
            data=source.decoded_data(),
            size_bytes=source.size_bytes,
        )
        for source in payload.sources
    ]

    try:
        job = await import_service.start_import(
            payload.org_id,
            uploads,
            force_background=payload.force_background,
            created_by=user_id,
        )
    except AppError as e:
        _raise_http_error(e, request)

    LOGGER.info(
        f"Import job {job.id} submitted with status {job.status}",
        extra={"org_id": job.org_id, "source_count": len(uploads)},
    )
    return create_api_response(
        data=ImportJobResponse.model_validate(job),
        message="Import job queued" if job.status == "pending" else "Import job processed",
        request=request,
    )


@router.get(
    "",
    response_model=ApiResponse,
    summary="List import history",
    operation_id="list_import_jobs",
)
async def list_import_jobs(
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    import_service: Annotated[ImportJobService, Depends(get_import_job_service)],
    org_id: str = Query(..., min_length=1),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    """An organization's imports, newest first, with candidate counts and errors."""
    try:
        jobs = await import_service.list_jobs(org_id, limit=limit, offset=offset)
    except AppError as e:
        _raise_http_error(e, request)

    return create_api_response(
        data=ImportHistoryResponse(org_id=org_id, jobs=[ImportHistoryItem.from_job(job) for job in jobs]),
        message="Import history retrieved",
        request=request,
    )


@router.get(
    "/{job_id}",
    response_model=ApiResponse,
    summary="Get import job",
    operation_id="get_import_job",
)
async def get_import_job(
    request: Request,
    job_id: UUID,
    user_id: Annotated[str, Depends(get_current_user_id)],
    import_service: Annotated[ImportJobService, Depends(get_import_job_service)],
    org_id: str = Query(..., min_length=1),
) -> ApiResponse:
    """Fetch a job; poll this while a background run is in progress."""
    try:
        job = await import_service.get_job(job_id, org_id)
    except AppError as e:
        _raise_http_error(e, request)

    return create_api_response(
        data=ImportJobResponse.model_validate(job),
        message="Import job retrieved",
        request=request,
    )


@router.post(
    "/{job_id}/retry",
    response_model=ApiResponse,
    summary="Retry an import",
    operation_id="retry_import",
)
async def retry_import(
    request: Request,
    job_id: UUID,
    payload: RerunImportRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    import_service: Annotated[ImportJobService, Depends(get_import_job_service)],
) -> ApiResponse:
    """Re-run extraction over the stored sources, keeping the previous result."""
    LOGGER.info(f"Retry requested for import job {job_id} by {user_id}")
    try:
        job = await import_service.retry(job_id, payload.org_id)
    except AppError as e:
        _raise_http_error(e, request)

    return create_api_response(
        data=ImportJobResponse.model_validate(job),
        message="Import job retried",
        request=request,
    )


@router.post(
    "/{job_id}/ai-enhance",
    response_model=ApiResponse,
    summary="Re-run an import with AI extraction",
    operation_id="ai_enhance_import",
)
async def ai_enhance_import(
    request: Request,
    job_id: UUID,
    payload: RerunImportRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    import_service: Annotated[ImportJobService, Depends(get_import_job_service)],
) -> ApiResponse:
    """Re-run extraction with an AI pass over the full normalized text."""
    LOGGER.info(f"AI enhance requested for import job {job_id} by {user_id}")
    try:
        job = await import_service.ai_enhance(job_id, payload.org_id)
    except AppError as e:
        _raise_http_error(e, request)

    return create_api_response(
        data=ImportJobResponse.model_validate(job),
        message="Import job enhanced",
        request=request,
    )
