"""Response envelope and RFC 7807 error detail builders for the API."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import Request
from pydantic import BaseModel

from show_import.schemas.common import ApiResponse, ErrorDetail, ResponseMeta


def _request_id(request: Optional[Request]) -> str:
    """Correlation id set by the middleware, or a fresh one outside a request."""
    correlation_id = getattr(request.state, "correlation_id", None) if request is not None else None
    return correlation_id or str(uuid4())


def _as_data(data: Any) -> Dict[str, Any]:
    if data is None:
        return {}
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, dict):
        return data
    if isinstance(data, list):
        return {"items": [_as_data(item) if isinstance(item, BaseModel) else item for item in data]}
    return {"value": data}


def create_api_response(
    data: Any,
    message: str = "Operation successful",
    status: bool = True,
    request: Optional[Request] = None,
    api_version: str = "v1",
) -> Dict[str, Any]:
    """Wrap ``data`` in the ``{status, message, data, meta}`` envelope.

    Returns a plain dict so endpoints can declare ``response_model=ApiResponse``
    without a second validation pass over the job payload.
    """
    response = ApiResponse(
        status=status,
        message=message,
        data=_as_data(data),
        meta=ResponseMeta(
            timestamp=datetime.now(timezone.utc),
            request_id=_request_id(request),
            api_version=api_version,
        ),
    )
    return response.model_dump(mode="json")


def create_error_detail(
    title: str,
    status: int,
    detail: str,
    request: Optional[Request] = None,
    code: Optional[str] = None,
    instance: Optional[str] = None,
) -> ErrorDetail:
    """Problem details for an ``HTTPException``; ``code`` is the AppError code."""
    return ErrorDetail(
        title=title,
        status=status,
        detail=detail,
        code=code,
        instance=instance or (request.url.path if request is not None else None),
        request_id=_request_id(request),
        timestamp=datetime.now(timezone.utc),
    )
