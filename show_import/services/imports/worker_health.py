"""Background worker liveness: heartbeat registry and submission-time check."""

import time
from typing import Callable, Dict, Optional

import httpx

from show_import.core.exceptions import WorkerUnavailableError
from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)


class WorkerHeartbeatRegistry:
    """In-memory record of the last heartbeat from each worker.

    Owned by the API application (``app.state``); workers POST to it on an
    interval and the health endpoint reports from it.
    """

    def __init__(self, stale_after_seconds: float = 30, clock: Callable[[], float] = time.time):
        self.stale_after_seconds = stale_after_seconds
        self._clock = clock
        self._last_seen: Dict[str, float] = {}

    def record(self, worker_id: str) -> None:
        self._last_seen[worker_id] = self._clock()

    def prune(self) -> None:
        """Forget workers not heard from within the stale window."""
        cutoff = self._clock() - self.stale_after_seconds
        for worker_id in [w for w, seen in self._last_seen.items() if seen < cutoff]:
            del self._last_seen[worker_id]
            LOGGER.info(f"Worker {worker_id} heartbeat expired", extra={"worker_id": worker_id})

    def status(self) -> Dict[str, object]:
        self.prune()
        workers = sorted(self._last_seen)
        return {
            "healthy": bool(workers),
            "active_workers": len(workers),
            "workers": workers,
        }


class WorkerHealthCheck:
    """Checks the worker health endpoint before work is queued.

    Attributes:
        health_url: URL returning ``{healthy, active_workers}``
        timeout_seconds: Bound on the health request
    """

    def __init__(
        self,
        health_url: str,
        timeout_seconds: float = 2.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.health_url = health_url
        self.timeout_seconds = timeout_seconds
        self.http_client = http_client

    async def is_healthy(self) -> bool:
        """Return True only for a healthy report with at least one active worker."""
        try:
            if self.http_client is not None:
                response = await self.http_client.get(self.health_url, timeout=self.timeout_seconds)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.get(self.health_url)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            LOGGER.warning(
                f"Worker health check failed: {e}",
                extra={"health_url": self.health_url},
            )
            return False

        # The API wraps the report in an ApiResponse envelope
        data = payload.get("data", payload) if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            data = {}
        active_workers = data.get("active_workers")
        healthy = (
            data.get("healthy") is True
            and isinstance(active_workers, int)
            and active_workers > 0
        )
        LOGGER.info(
            f"Worker health check: healthy={healthy}",
            extra={"active_workers": data.get("active_workers")},
        )
        return healthy

    async def ensure_available(self) -> None:
        """Raise WorkerUnavailableError unless a worker is alive."""
        if not await self.is_healthy():
            raise WorkerUnavailableError(
                "Background import worker is unavailable. Try again shortly or submit fewer sources."
            )
