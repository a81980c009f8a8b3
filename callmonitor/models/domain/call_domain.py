"""
Domain models for call legs.

CallEvent is the transient record decoded from the CTI stream; CallRecord is
the aggregate built from a sequence of events for one (call id, extension)
leg and handed to the store and broadcast collaborators.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class CallStatus(str, Enum):
    """Lifecycle status of a call leg."""

    RINGING = "ringing"
    ACTIVE = "active"
    ANSWERED = "answered"
    MISSED = "missed"
    BUSY = "busy"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self not in (CallStatus.RINGING, CallStatus.ACTIVE)


# Stream states grouped by the transition they trigger
RINGING_STATES = frozenset({"start", "dial", "ring"})
ANSWER_STATES = frozenset({"answer", "bridge"})
HANGUP_STATES = frozenset({"hangup", "end"})

# End reasons assigned by the monitor itself
END_REASON_CANCEL = "cancel"
END_REASON_STALE = "stale"


class InvalidCallEventError(ValueError):
    """Raised when a stream payload cannot be turned into a CallEvent."""

    def __init__(self, message: str, payload: Any = None):
        super().__init__(message)
        self.payload = payload


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


@dataclass(slots=True)
class CallEvent:
    """A single call-state notification from the CTI stream."""

    id: str
    caller: str = ""
    callee: str = ""
    state: str = ""
    direction: str = ""
    extension: str = ""
    error: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "CallEvent":
        """
        Build an event from a decoded stream record.

        Missing optional fields stay empty. The call id is the only field
        that cannot be absent because records are keyed on it.

        Raises:
            InvalidCallEventError: If payload is not an object or has no call id
        """
        if not isinstance(payload, dict):
            raise InvalidCallEventError("Call event payload is not an object", payload)

        call_id = _text(payload.get("id") or payload.get("uuid"))
        if not call_id:
            raise InvalidCallEventError("Call event payload has no call id", payload)

        error = _text(payload.get("error")) or None

        return cls(
            id=call_id,
            caller=_text(payload.get("caller")),
            callee=_text(payload.get("callee")),
            state=_text(payload.get("state")).lower(),
            direction=_text(payload.get("direction")).lower(),
            extension=_text(payload.get("extension")),
            error=error,
        )


@dataclass(slots=True)
class CallRecord:
    """Aggregated lifecycle of one call leg, keyed by (id, extension)."""

    id: str
    extension: str
    caller: str
    callee: str
    extension_name: str
    direction: str
    start_time: datetime
    status: CallStatus = CallStatus.RINGING
    answer_time: datetime | None = None
    end_time: datetime | None = None
    duration: int | None = None
    end_reason: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.id, self.extension)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase keys used by API consumers."""
        return {
            "id": self.id,
            "extension": self.extension,
            "caller": self.caller,
            "callee": self.callee,
            "extensionName": self.extension_name,
            "direction": self.direction,
            "startTime": self.start_time.isoformat(),
            "answerTime": self.answer_time.isoformat() if self.answer_time else None,
            "endTime": self.end_time.isoformat() if self.end_time else None,
            "duration": self.duration,
            "status": self.status.value,
            "endReason": self.end_reason,
        }
