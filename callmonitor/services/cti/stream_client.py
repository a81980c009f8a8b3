"""
Reconnecting reader for the CTI call event stream.

The stream is newline-delimited JSON with optional SSE framing. Each decoded
record is handed to the call handler synchronously and in order; any read
error or end of stream is followed by a fixed delay and a reconnect for as
long as the client is running.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

from callmonitor.infrastructure.observability.logging import get_logger
from callmonitor.models.domain import CallEvent, InvalidCallEventError
from callmonitor.services.calls.broadcast import BroadcastEvent, CallEventSink
from callmonitor.services.cti.client import CtiApiClient, CtiApiError

logger = get_logger(__name__)

DEFAULT_RECONNECT_DELAY_SECONDS = 5.0

Sleep = Callable[[float], Awaitable[Any]]
EventHandler = Callable[[CallEvent], Any]


class SseLineDecoder:
    """Splits stream chunks into JSON records, buffering partial lines."""

    def __init__(self):
        self._buffer = ""

    def reset(self) -> None:
        self._buffer = ""

    def feed(self, chunk: str) -> list[dict[str, Any]]:
        self._buffer += chunk
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        records = []
        for line in lines:
            record = self.decode_line(line)
            if record is not None:
                records.append(record)
        return records

    @staticmethod
    def decode_line(line: str) -> dict[str, Any] | None:
        """
        Decode one stream line.

        Returns None for blank lines, comments, "event:" lines and anything
        that is not a JSON object.
        """
        trimmed = line.strip()
        if not trimmed or trimmed.startswith(":") or trimmed.startswith("event:"):
            return None

        payload = trimmed[5:].strip() if trimmed.startswith("data:") else trimmed
        try:
            record = json.loads(payload)
        except ValueError:
            logger.warning("Skipping undecodable stream line", line=trimmed[:200])
            return None

        if not isinstance(record, dict):
            logger.warning("Skipping non-object stream record", line=trimmed[:200])
            return None
        return record


class StreamClient:
    """Keeps one call event stream open and feeds the handler."""

    def __init__(
        self,
        api: CtiApiClient,
        on_event: EventHandler,
        sink: CallEventSink | None = None,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY_SECONDS,
        sleep: Sleep = asyncio.sleep,
    ):
        self._api = api
        self._on_event = on_event
        self._sink = sink
        self.reconnect_delay = reconnect_delay
        self._sleep = sleep
        self._decoder = SseLineDecoder()
        self._task: asyncio.Task | None = None
        self.running = False
        self.connected = False
        self.events_processed = 0
        self.reconnects = 0

    def start(self) -> asyncio.Task:
        """Start the reader task (idempotent)."""
        if self._task is not None and not self._task.done():
            return self._task
        self.running = True
        self._task = asyncio.create_task(self.run(), name="cti-call-stream")
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
        """Read, dispatch and reconnect until stopped."""
        self.running = True
        while self.running:
            try:
                await self._consume()
                logger.warning("Call stream closed by server")
            except asyncio.CancelledError:
                raise
            except CtiApiError as e:
                logger.error(
                    "Call stream request failed",
                    error=str(e),
                    status_code=e.status_code,
                )
                if e.status_code == 401:
                    await self._reauthenticate()
            except Exception as e:
                logger.error("Call stream error", error=str(e), error_type=type(e).__name__)

            if not self.running:
                break
            self.reconnects += 1
            logger.info("Reconnecting call stream", delay_seconds=self.reconnect_delay)
            await self._sleep(self.reconnect_delay)

    async def _consume(self) -> None:
        self._decoder.reset()
        # Failed connection attempts report disconnected as well
        try:
            async with self._api.open_call_stream() as chunks:
                self._set_connected(True)
                async for chunk in chunks:
                    for record in self._decoder.feed(chunk):
                        self._dispatch(record)
        finally:
            self._set_connected(False)

    def _dispatch(self, record: dict[str, Any]) -> None:
        try:
            event = CallEvent.from_payload(record)
        except InvalidCallEventError as e:
            logger.warning("Skipping invalid call event", error=str(e))
            return

        try:
            self._on_event(event)
        except Exception:
            logger.exception(
                "Call event handler failed",
                call_id=event.id,
                extension=event.extension,
                state=event.state,
            )
            return
        self.events_processed += 1

    async def _reauthenticate(self) -> None:
        try:
            await self._api.reauthenticate()
        except Exception as e:
            logger.error("Re-authentication for call stream failed", error=str(e))

    def _set_connected(self, connected: bool) -> None:
        self.connected = connected
        if connected:
            logger.info("Call stream connected")
        else:
            logger.info("Call stream disconnected")
        if self._sink is None:
            return
        event = BroadcastEvent.STREAM_CONNECTED if connected else BroadcastEvent.STREAM_DISCONNECTED
        try:
            self._sink.emit(event.value, None)
        except Exception as e:
            logger.error("Failed to emit stream status", error=str(e))
