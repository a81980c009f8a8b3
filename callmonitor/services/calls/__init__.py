from .aggregator import CallAggregator, resolve_end_status, talk_seconds, utc_now
from .broadcast import BroadcastEvent, CallEventSink, EventBroadcaster

__all__ = [
    "BroadcastEvent",
    "CallAggregator",
    "CallEventSink",
    "EventBroadcaster",
    "resolve_end_status",
    "talk_seconds",
    "utc_now",
]
