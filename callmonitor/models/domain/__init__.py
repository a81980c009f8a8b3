from .call_domain import (
    ANSWER_STATES,
    END_REASON_CANCEL,
    END_REASON_STALE,
    HANGUP_STATES,
    RINGING_STATES,
    CallEvent,
    CallRecord,
    CallStatus,
    InvalidCallEventError,
)
from .contact_domain import ContactMatch, DirectoryContact, DirectoryEntry, DirectorySnapshot
from .extension_domain import PRESENCE_OFFLINE, ExtensionState

__all__ = [
    "ANSWER_STATES",
    "END_REASON_CANCEL",
    "END_REASON_STALE",
    "HANGUP_STATES",
    "PRESENCE_OFFLINE",
    "RINGING_STATES",
    "CallEvent",
    "CallRecord",
    "CallStatus",
    "ContactMatch",
    "DirectoryContact",
    "DirectoryEntry",
    "DirectorySnapshot",
    "ExtensionState",
    "InvalidCallEventError",
]
