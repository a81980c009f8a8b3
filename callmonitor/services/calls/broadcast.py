"""
In-process broadcast channel for call and extension updates.

The aggregator, stream client and presence poller only know the CallEventSink
protocol; transports (Socket.IO, SSE, queues) subscribe to an
EventBroadcaster from the outside.
"""

from collections import defaultdict
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol

from callmonitor.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

EventHandler = Callable[[Any], None]


class BroadcastEvent(str, Enum):
    CALL_NEW = "new"
    CALL_UPDATED = "updated"
    EXTENSIONS_UPDATED = "extensions"
    STREAM_CONNECTED = "stream:connected"
    STREAM_DISCONNECTED = "stream:disconnected"


class CallEventSink(Protocol):
    def emit(self, event: str, payload: Any = None) -> None: ...


class EventBroadcaster:
    """Synchronous fan-out of events to subscribed handlers."""

    def __init__(self):
        self._handlers: defaultdict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event: str, handler: EventHandler) -> Callable[[], None]:
        """
        Register a handler for one event name.

        Returns:
            Callable that removes the subscription again
        """
        key = _event_name(event)
        self._handlers[key].append(handler)

        def _unsubscribe() -> None:
            handlers = self._handlers.get(key, [])
            if handler in handlers:
                handlers.remove(handler)

        return _unsubscribe

    def emit(self, event: str, payload: Any = None) -> None:
        key = _event_name(event)
        for handler in list(self._handlers.get(key, ())):
            try:
                handler(payload)
            except Exception:
                logger.exception("Broadcast handler failed", broadcast_event=key)

    def subscriber_count(self, event: str) -> int:
        return len(self._handlers.get(_event_name(event), ()))


def _event_name(event: str) -> str:
    return event.value if isinstance(event, BroadcastEvent) else str(event)
