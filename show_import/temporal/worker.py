"""Temporal worker process for background imports.

Runs three things side by side:
- a small FastAPI app serving ``/health`` for the hosting platform
- a heartbeat loop posting to the API's worker registry, which is how
  submissions learn whether queued work will be picked up
- the Temporal worker polling the imports task queue
"""

import asyncio
import socket
import uuid
from datetime import datetime, timezone
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI
from temporalio.client import Client
from temporalio.worker import Worker
from temporalio.worker.workflow_sandbox import SandboxedWorkflowRunner, SandboxRestrictions

from show_import.core.config import settings
from show_import.temporal.activities import ALL_ACTIVITIES
from show_import.temporal.workflows import ALL_WORKFLOWS
from show_import.utils.logging import get_logger

logger = get_logger(__name__)

WORKER_ID = f"{socket.gethostname()}-{uuid.uuid4().hex[:8]}"

_last_heartbeat: Optional[datetime] = None

health_app = FastAPI(title="Import Worker")


@health_app.get("/health")
async def worker_health():
    return {
        "status": "ok",
        "worker_id": WORKER_ID,
        "task_queue": settings.temporal.task_queue,
        "last_heartbeat": _last_heartbeat.isoformat() if _last_heartbeat else None,
    }


async def heartbeat_loop() -> None:
    """Post this worker's id to the registry every heartbeat interval."""
    global _last_heartbeat
    worker_settings = settings.worker

    async with httpx.AsyncClient(timeout=worker_settings.health_timeout_seconds) as client:
        while True:
            try:
                response = await client.post(worker_settings.health_url, json={"worker_id": WORKER_ID})
                response.raise_for_status()
                _last_heartbeat = datetime.now(timezone.utc)
            except httpx.HTTPError as e:
                logger.warning(
                    f"Heartbeat failed: {e}",
                    extra={"worker_id": WORKER_ID, "url": worker_settings.health_url},
                )
            await asyncio.sleep(worker_settings.heartbeat_interval_seconds)


async def serve_health() -> None:
    port = settings.worker.health_port
    logger.info(f"Worker health route listening on :{port}")
    server = uvicorn.Server(uvicorn.Config(health_app, host="0.0.0.0", port=port, log_level="warning"))
    await server.serve()


async def connect_with_backoff(attempts: int = 6, base_delay: float = 1.0) -> Client:
    """Connect to Temporal, doubling the wait between failed attempts.

    Raises:
        Exception: The last connection error once ``attempts`` are used up
    """
    target = settings.temporal.target
    delay = base_delay
    for attempt in range(1, attempts + 1):
        try:
            client = await Client.connect(target, namespace=settings.temporal.namespace)
            logger.info(f"Connected to Temporal at {target}", extra={"attempt": attempt})
            return client
        except Exception as e:
            if attempt == attempts:
                logger.error(f"Giving up on Temporal at {target} after {attempts} attempts: {e}")
                raise
            logger.warning(f"Temporal at {target} not reachable ({e}), retrying in {delay:.0f}s")
            await asyncio.sleep(delay)
            delay *= 2


async def poll_imports() -> None:
    client = await connect_with_backoff()
    queue = settings.temporal.task_queue

    worker = Worker(
        client,
        task_queue=queue,
        workflows=ALL_WORKFLOWS,
        activities=ALL_ACTIVITIES,
        max_concurrent_activities=settings.imports.extraction_concurrency * 2,
        workflow_runner=SandboxedWorkflowRunner(
            restrictions=SandboxRestrictions.default.with_passthrough_all_modules()
        ),
    )

    logger.info(
        f"Worker {WORKER_ID} polling {queue}",
        extra={"workflows": [w.__name__ for w in ALL_WORKFLOWS], "activities": len(ALL_ACTIVITIES)},
    )
    await worker.run()


async def main() -> None:
    await asyncio.gather(serve_health(), heartbeat_loop(), poll_imports())


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Import worker stopped")
