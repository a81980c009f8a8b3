"""
Domain model for PBX extensions and their live line/presence state.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

PRESENCE_OFFLINE = "offline"


@dataclass(slots=True)
class ExtensionState:
    """Live state of one configured extension. Mutated in place, never replaced."""

    extension_number: str
    name: str = ""
    uuid: str | None = None
    presence: str = PRESENCE_OFFLINE
    line: str = ""
    last_state_change: datetime | None = None
    agent_logged_in: bool = False
    current_call: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "extensionNumber": self.extension_number,
            "name": self.name,
            "uuid": self.uuid,
            "presence": self.presence,
            "line": self.line,
            "lastStateChange": (
                self.last_state_change.isoformat() if self.last_state_change else None
            ),
            "agentLoggedIn": self.agent_logged_in,
            "currentCall": self.current_call,
        }
