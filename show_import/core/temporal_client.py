"""Cached Temporal connection for the API process.

Used to dispatch background import workflows. The worker process opens its own
connection in ``show_import.temporal.worker``.
"""

from typing import Optional

from temporalio.client import Client

from show_import.core.config import settings
from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)

_client: Optional[Client] = None


async def get_temporal_client() -> Client:
    """Return the shared client, connecting on first use."""
    global _client
    if _client is None:
        target = settings.temporal.target
        LOGGER.info(f"Connecting to Temporal at {target}", extra={"namespace": settings.temporal.namespace})
        _client = await Client.connect(target, namespace=settings.temporal.namespace)
    return _client


def reset_temporal_client() -> None:
    """Forget the cached client so the next dispatch reconnects."""
    global _client
    _client = None
