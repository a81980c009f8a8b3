"""
Stale call reaper.

Finalizes call legs that never received a hangup, e.g. because the stream
dropped while they were ringing.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from callmonitor.config import settings
from callmonitor.infrastructure.observability.logging import get_logger
from callmonitor.services.calls.aggregator import CallAggregator

logger = get_logger(__name__)

# Job configuration
REAPER_INTERVAL_SECONDS = settings.STALE_REAPER_INTERVAL_SECONDS
ERROR_BACKOFF_SECONDS = 30


def run_stale_call_reaper(aggregator: CallAggregator) -> dict:
    """Run a single reaper pass and return its metrics."""
    active_before = aggregator.active_count
    reaped = aggregator.reap_stale()
    metrics = {
        "active_before": active_before,
        "reaped": len(reaped),
        "active_after": aggregator.active_count,
    }
    if reaped:
        logger.info("Stale call reaper cycle completed", **metrics)
    return metrics


async def start_stale_call_reaper_scheduler(
    aggregator: CallAggregator,
    interval_seconds: float = REAPER_INTERVAL_SECONDS,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> None:
    """Reap stale legs every interval until cancelled."""
    logger.info("Starting stale call reaper", interval_seconds=interval_seconds)

    while True:
        try:
            await sleep(interval_seconds)
            run_stale_call_reaper(aggregator)
        except asyncio.CancelledError:
            logger.info("Stale call reaper stopped")
            raise
        except Exception as e:
            logger.error(
                "Error in stale call reaper", error=str(e), error_type=type(e).__name__
            )
            await sleep(ERROR_BACKOFF_SECONDS)
