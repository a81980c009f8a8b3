"""
Contact directory refresh job.

Reloads the phone directory snapshot on a fixed schedule. A failed cycle
keeps the previous snapshot; the next cycle simply tries again.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from callmonitor.config import settings
from callmonitor.infrastructure.observability.logging import get_logger
from callmonitor.services.contacts.directory_cache import DirectoryCache

logger = get_logger(__name__)

# Job configuration
REFRESH_INTERVAL_SECONDS = settings.DIRECTORY_REFRESH_MINUTES * 60


async def run_directory_refresh(cache: DirectoryCache) -> dict:
    """Run a single refresh cycle and return its metrics."""
    start_time = time.time()
    refreshed = await cache.refresh()
    snapshot = cache.snapshot
    return {
        "refreshed": refreshed,
        "entry_count": len(snapshot) if snapshot else 0,
        "error": cache.last_refresh_error,
        "duration_seconds": round(time.time() - start_time, 2),
    }


async def start_directory_refresh_scheduler(
    cache: DirectoryCache,
    interval_seconds: float = REFRESH_INTERVAL_SECONDS,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    run_immediately: bool = True,
) -> None:
    """Refresh the directory now and then every interval until cancelled."""
    if not cache.is_configured:
        logger.info("Contact directory not configured, refresh scheduler idle")
        return

    logger.info("Starting directory refresh scheduler", interval_seconds=interval_seconds)

    if not run_immediately:
        await sleep(interval_seconds)

    while True:
        try:
            metrics = await run_directory_refresh(cache)
            logger.info("Directory refresh cycle completed", **metrics)
        except asyncio.CancelledError:
            logger.info("Directory refresh scheduler stopped")
            raise
        except Exception as e:
            logger.error(
                "Error in directory refresh scheduler", error=str(e), error_type=type(e).__name__
            )
        await sleep(interval_seconds)
