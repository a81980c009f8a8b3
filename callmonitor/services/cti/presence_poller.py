"""
Adaptive polling of extension line and presence state.

The poll cadence follows stream activity: right after a call event the
states are refreshed every few seconds, on a quiet system once a minute.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from callmonitor.infrastructure.observability.logging import get_logger
from callmonitor.services.calls.broadcast import BroadcastEvent, CallEventSink
from callmonitor.services.cti.client import CtiApiClient
from callmonitor.services.cti.extension_registry import ExtensionRegistry

logger = get_logger(__name__)

Clock = Callable[[], datetime]
Sleep = Callable[[float], Awaitable[Any]]

# (upper bound of seconds since last stream event, poll interval)
POLL_TIERS: tuple[tuple[float, float], ...] = (
    (30.0, 3.0),
    (300.0, 15.0),
    (3600.0, 30.0),
)
IDLE_POLL_INTERVAL = 60.0


def poll_interval_for(elapsed: float | None) -> float:
    """
    Poll interval for the time elapsed since the last stream event.

    None means no event was seen yet and counts as idle.
    """
    if elapsed is None:
        return IDLE_POLL_INTERVAL
    for bound, interval in POLL_TIERS:
        if elapsed < bound:
            return interval
    return IDLE_POLL_INTERVAL


def _utc_now() -> datetime:
    return datetime.now(UTC)


class PresencePoller:
    """Sequential poll loop feeding the extension registry."""

    def __init__(
        self,
        api: CtiApiClient,
        registry: ExtensionRegistry,
        sink: CallEventSink | None = None,
        last_event_time: Callable[[], datetime | None] = lambda: None,
        clock: Clock = _utc_now,
        sleep: Sleep = asyncio.sleep,
    ):
        self._api = api
        self._registry = registry
        self._sink = sink
        self._last_event_time = last_event_time
        self._clock = clock
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self.running = False
        self.polls = 0
        self.failures = 0

    async def load_extensions(self) -> int:
        """
        Load configured extensions and their current states into the registry.

        Returns:
            int: Number of registered extensions
        """
        extensions = await self._api.get_extensions()
        try:
            states = await self._api.get_line_states()
        except Exception as e:
            logger.warning("Initial line state fetch failed", error=str(e))
            states = []

        self._registry.load(extensions, states, now=self._clock())
        self._emit()
        return len(self._registry)

    async def poll_once(self) -> bool:
        """
        Fetch line states once and apply the diff.

        Returns:
            bool: True if at least one extension changed. Fetch errors are
            logged and reported as no change.
        """
        self.polls += 1
        try:
            states = await self._api.get_line_states()
        except Exception as e:
            self.failures += 1
            logger.warning(
                "Line state poll failed", error=str(e), error_type=type(e).__name__
            )
            return False

        changed = self._registry.apply_line_states(states, now=self._clock())
        if not changed:
            return False

        logger.debug("Extension states changed", extensions=changed)
        self._emit()
        return True

    def next_interval(self) -> float:
        last = self._last_event_time()
        elapsed = None if last is None else (self._clock() - last).total_seconds()
        return poll_interval_for(elapsed)

    def start(self) -> asyncio.Task:
        if self._task is not None and not self._task.done():
            return self._task
        self.running = True
        self._task = asyncio.create_task(self.run(), name="cti-presence-poller")
        return self._task

    async def stop(self) -> None:
        self.running = False
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def run(self) -> None:
        self.running = True
        while self.running:
            await self._sleep(self.next_interval())
            if not self.running:
                break
            await self.poll_once()

    def _emit(self) -> None:
        if self._sink is None:
            return
        try:
            self._sink.emit(BroadcastEvent.EXTENSIONS_UPDATED.value, self._registry.list_states())
        except Exception as e:
            logger.error("Failed to emit extension update", error=str(e))
