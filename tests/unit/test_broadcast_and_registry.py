"""
Tests for the broadcast channel and the extension registry.
"""

from datetime import UTC, datetime

from callmonitor.services.calls import BroadcastEvent, EventBroadcaster
from callmonitor.services.cti import ExtensionRegistry

NOW = datetime(2025, 3, 3, 9, 0, 0, tzinfo=UTC)


def test_broadcaster_delivers_to_subscribers_of_event():
    broadcaster = EventBroadcaster()
    received = []
    broadcaster.subscribe(BroadcastEvent.CALL_NEW, received.append)
    broadcaster.subscribe("updated", lambda payload: received.append(("updated", payload)))

    broadcaster.emit("new", "record-1")
    broadcaster.emit(BroadcastEvent.CALL_UPDATED, "record-2")

    assert received == ["record-1", ("updated", "record-2")]


def test_unsubscribe_stops_delivery():
    broadcaster = EventBroadcaster()
    received = []
    unsubscribe = broadcaster.subscribe("extensions", received.append)

    unsubscribe()
    unsubscribe()
    broadcaster.emit("extensions", [])

    assert received == []
    assert broadcaster.subscriber_count("extensions") == 0


def test_failing_handler_does_not_block_others():
    broadcaster = EventBroadcaster()
    received = []

    def failing(payload):
        raise RuntimeError("socket gone")

    broadcaster.subscribe("new", failing)
    broadcaster.subscribe("new", received.append)

    broadcaster.emit("new", "record")

    assert received == ["record"]


def _registry():
    registry = ExtensionRegistry()
    registry.load(
        [
            {"extension_number": "100", "name": "Empfang", "uuid": "u-100"},
            {"extension_number": "101", "name": "Vertrieb", "uuid": "u-101"},
            {"extension_number": "", "name": "Ohne Nummer"},
        ],
        [{"extension": "100", "presence": "online", "line": "idle"}],
        now=NOW,
    )
    return registry


def test_load_registers_extensions_with_initial_state():
    registry = _registry()

    assert len(registry) == 2
    assert "100" in registry
    assert registry.name_for("101") == "Vertrieb"
    assert registry.name_for("999") is None
    state = registry.get("100")
    assert state.presence == "online"
    assert state.line == "idle"
    assert state.last_state_change == NOW
    assert registry.get("101").presence == "offline"


def test_list_states_returns_registered_extensions_in_load_order():
    registry = _registry()

    states = registry.list_states()

    assert [state.extension_number for state in states] == ["100", "101"]
    assert states[0] is registry.get("100")
    assert isinstance(registry.apply_line_states([]), list)


def test_reload_keeps_identity_of_known_extensions():
    registry = _registry()
    state = registry.get("100")

    registry.load([{"extension_number": "100", "name": "Zentrale", "uuid": "u-100"}])

    assert registry.get("100") is state
    assert state.name == "Zentrale"


def test_apply_line_states_reports_only_changes():
    registry = _registry()
    later = datetime(2025, 3, 3, 9, 5, 0, tzinfo=UTC)

    unchanged = registry.apply_line_states(
        [{"extension": "100", "presence": "online", "line": "idle"}], now=later
    )
    changed = registry.apply_line_states(
        [
            {"extension": "100", "presence": "online", "line": "busy"},
            {"extension": "101", "presence": "online", "line": "idle"},
        ],
        now=later,
    )

    assert unchanged == []
    assert changed == ["100", "101"]
    assert registry.get("100").line == "busy"
    assert registry.get("100").last_state_change == later


def test_missing_extension_goes_offline():
    registry = _registry()

    changed = registry.apply_line_states([])

    assert changed == ["100"]
    assert registry.get("100").presence == "offline"


def test_current_call_cleared_only_for_matching_call():
    registry = _registry()
    registry.set_current_call("100", "c2")

    registry.clear_current_call("100", "c1")
    assert registry.get("100").current_call == "c2"

    registry.clear_current_call("100", "c2")
    assert registry.get("100").current_call is None


def test_extension_serialization():
    data = _registry().get("100").to_dict()

    assert data["extensionNumber"] == "100"
    assert data["presence"] == "online"
    assert data["lastStateChange"] == NOW.isoformat()
    assert data["currentCall"] is None
