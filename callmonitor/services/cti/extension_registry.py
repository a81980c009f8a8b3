"""
Registry of configured PBX extensions and their live line/presence state.

Entries are created once per configured extension and mutated in place by
the presence poller (line, presence) and the call aggregator (current call).
"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from callmonitor.infrastructure.observability.logging import get_logger
from callmonitor.models.domain import PRESENCE_OFFLINE, ExtensionState

logger = get_logger(__name__)


class ExtensionRegistry:
    """Per-extension state keyed by extension number."""

    def __init__(self):
        self._extensions: dict[str, ExtensionState] = {}

    def __len__(self) -> int:
        return len(self._extensions)

    def __contains__(self, extension_number: str) -> bool:
        return extension_number in self._extensions

    def get(self, extension_number: str) -> ExtensionState | None:
        return self._extensions.get(extension_number)

    def list_states(self) -> list[ExtensionState]:
        return list(self._extensions.values())

    def name_for(self, extension_number: str) -> str | None:
        state = self._extensions.get(extension_number)
        return state.name if state and state.name else None

    def load(
        self,
        extensions: Iterable[Mapping[str, Any]],
        states: Iterable[Mapping[str, Any]] = (),
        now: datetime | None = None,
    ) -> list[ExtensionState]:
        """
        Register configured extensions from the CTI extension listing.

        Known extensions keep their identity and are updated in place.

        Args:
            extensions: Items with "extension_number", "name" and "uuid"
            states: Line state items used to seed presence and line
            now: Timestamp recorded as last state change for seeded values
        """
        for item in extensions:
            number = str(item.get("extension_number") or "").strip()
            if not number:
                continue
            state = self._extensions.get(number)
            if state is None:
                state = ExtensionState(extension_number=number)
                self._extensions[number] = state
            state.name = str(item.get("name") or "")
            state.uuid = item.get("uuid") or state.uuid

        self.apply_line_states(states, now=now)
        logger.info("Extensions registered", extension_count=len(self._extensions))
        return self.list_states()

    def apply_line_states(
        self, states: Iterable[Mapping[str, Any]], now: datetime | None = None
    ) -> list[str]:
        """
        Diff reported line states against the known values.

        Extensions missing from the report are considered offline.

        Returns:
            list[str]: Extension numbers whose state actually changed
        """
        by_number: dict[str, Mapping[str, Any]] = {}
        for item in states:
            number = str(item.get("extension") or "").strip()
            if number:
                by_number[number] = item

        changed: list[str] = []
        for number, state in self._extensions.items():
            reported = by_number.get(number)
            if reported is None:
                presence, line, agent_logged_in = PRESENCE_OFFLINE, state.line, state.agent_logged_in
            else:
                presence = str(reported.get("presence") or PRESENCE_OFFLINE)
                line = str(reported.get("line") or "")
                agent_logged_in = bool(reported.get("agent_logged_in", state.agent_logged_in))

            if (
                presence != state.presence
                or line != state.line
                or agent_logged_in != state.agent_logged_in
            ):
                state.presence = presence
                state.line = line
                state.agent_logged_in = agent_logged_in
                state.last_state_change = now
                changed.append(number)

        return changed

    def set_current_call(self, extension_number: str, call_id: str | None) -> None:
        state = self._extensions.get(extension_number)
        if state is not None:
            state.current_call = call_id

    def clear_current_call(self, extension_number: str, call_id: str) -> None:
        """Clear the current call only if it is still the given one."""
        state = self._extensions.get(extension_number)
        if state is not None and state.current_call == call_id:
            state.current_call = None
