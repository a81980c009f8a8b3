"""
Generic background worker runner.

Reads the desired job name from CLI args or the WORKER_JOB environment
variable and delegates to the appropriate job.
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from callmonitor.config import settings
from callmonitor.db.call_store import PostgresCallStore
from callmonitor.db.pool import DatabasePoolManager
from callmonitor.infrastructure.observability.logging import get_logger, setup_logging
from callmonitor.jobs.directory_refresh_job import run_directory_refresh
from callmonitor.services.contacts import DirectoryCache, DirectoryClient
from callmonitor.services.monitor_service import CallMonitorService

logger = get_logger(__name__)

JobCoroutine = Callable[[], Awaitable[None]]


async def run_monitor() -> None:
    """Run the call monitor headless until cancelled."""
    service = CallMonitorService()
    await service.start()
    try:
        await asyncio.Event().wait()
    finally:
        await service.stop()


async def run_directory_refresh_once() -> None:
    """Load the contact directory once and report its size."""
    if not settings.directory_configured():
        logger.warning("Contact directory not configured, nothing to refresh")
        return

    client = DirectoryClient(
        base_url=settings.PF_API_BASE_URL,
        device_id=settings.PF_API_DEVICE_ID,
        token=settings.PF_API_TOKEN,
        page_size=settings.DIRECTORY_PAGE_SIZE,
    )
    cache = DirectoryCache(
        client,
        phone_types=settings.DIRECTORY_PHONE_TYPES,
        concurrency=settings.DIRECTORY_CONCURRENCY,
    )
    try:
        metrics = await run_directory_refresh(cache)
        logger.info("Directory refresh finished", **metrics)
    finally:
        await client.close()


async def run_stale_recovery() -> None:
    """Mark persisted ringing/active legs of a dead process as missed."""
    if not settings.DATABASE_URL:
        raise RuntimeError("DATABASE_URL must be configured for recover_stale")

    pool = DatabasePoolManager(settings.DATABASE_URL)
    await pool.initialize()
    try:
        store = PostgresCallStore(pool)
        await store.ensure_schema()
        recovered = await store.recover_stale()
        logger.info("Stale call recovery finished", recovered=recovered)
    finally:
        await pool.close()


JOB_REGISTRY: dict[str, JobCoroutine] = {
    "monitor": run_monitor,
    "directory_refresh": run_directory_refresh_once,
    "recover_stale": run_stale_recovery,
}


def _resolve_job_name() -> str:
    """Pick the target job from CLI args or WORKER_JOB env variable."""
    if len(sys.argv) > 1:
        return sys.argv[1].strip().lower()
    return os.getenv("WORKER_JOB", "monitor").strip().lower()


async def run_worker(job_name: str | None = None) -> None:
    """Run the requested background job."""
    name = (job_name or _resolve_job_name()).strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    logger.info("Starting background worker", job=name)
    await JOB_REGISTRY[name]()


def main() -> None:
    """CLI entrypoint."""
    setup_logging(log_level=settings.LOG_LEVEL)
    job_name = _resolve_job_name()
    asyncio.run(run_worker(job_name))


if __name__ == "__main__":
    main()
