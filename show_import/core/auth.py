"""Caller identity for FastAPI routes.

Authentication itself happens upstream; the gateway forwards the verified
user id in the ``X-User-Id`` header.
"""

from typing import Annotated, Optional

from fastapi import Header, HTTPException, status

from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)


async def get_current_user_id(
    x_user_id: Annotated[Optional[str], Header(alias="X-User-Id")] = None,
) -> str:
    """Return the authenticated user id.

    Raises:
        HTTPException: 401 if the header is missing or blank
    """
    if not x_user_id or not x_user_id.strip():
        LOGGER.warning("Request without X-User-Id header rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return x_user_id.strip()
