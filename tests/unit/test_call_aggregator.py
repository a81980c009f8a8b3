"""
Tests for the call state aggregator.
"""

from datetime import UTC, datetime, timedelta

import pytest

from callmonitor.models.domain import CallEvent, CallRecord, CallStatus
from callmonitor.services.calls import CallAggregator, resolve_end_status, talk_seconds

START = datetime(2025, 3, 3, 9, 0, 0, tzinfo=UTC)


def event(state, call_id="c1", extension="100", **kwargs):
    defaults = {"caller": "0625182755", "callee": "100", "direction": "inbound"}
    defaults.update(kwargs)
    return CallEvent(id=call_id, extension=extension, state=state, **defaults)


def test_first_event_creates_ringing_leg(aggregator, store, sink):
    record = aggregator.process_event(event("ring"))

    assert record.status is CallStatus.RINGING
    assert record.start_time == START
    assert record.extension_name == "Empfang"
    assert aggregator.active_count == 1
    assert store.get("c1", "100").status is CallStatus.RINGING
    assert sink.names() == ["new"]
    assert aggregator.last_event_time == START


def test_unknown_extension_uses_number_as_name(aggregator):
    assert aggregator.process_event(event("ring", extension="999")).extension_name == "999"
    assert aggregator.process_event(event("ring", extension="102")).extension_name == "102"


def test_answered_call_records_duration(aggregator, store, sink, clock):
    aggregator.process_event(event("ring"))
    clock.advance(5)
    aggregator.process_event(event("answer"))
    clock.advance(42.6)
    record = aggregator.process_event(event("hangup"))

    assert record.status is CallStatus.ANSWERED
    assert record.answer_time == START + timedelta(seconds=5)
    assert record.end_time == START + timedelta(seconds=47.6)
    assert record.duration == 43
    assert aggregator.active_count == 0
    assert store.get("c1", "100").duration == 43
    assert sink.names() == ["new", "updated", "updated"]


def test_duplicate_answer_keeps_first_answer_time(aggregator, clock):
    aggregator.process_event(event("ring"))
    clock.advance(3)
    aggregator.process_event(event("answer"))
    clock.advance(10)
    record = aggregator.process_event(event("bridge"))

    assert record.status is CallStatus.ACTIVE
    assert record.answer_time == START + timedelta(seconds=3)


@pytest.mark.parametrize(
    "error, expected",
    [
        ("busy", CallStatus.BUSY),
        ("reject", CallStatus.REJECTED),
        ("BUSY", CallStatus.BUSY),
        ("timeout", CallStatus.MISSED),
        (None, CallStatus.MISSED),
    ],
)
def test_unanswered_hangup_status_from_error(aggregator, error, expected):
    aggregator.process_event(event("ring"))
    record = aggregator.process_event(event("hangup", error=error))

    assert record.status is expected
    assert record.end_reason == error
    assert record.duration is None
    assert record.answer_time is None


def test_resolve_end_status():
    assert resolve_end_status("busy") is CallStatus.BUSY
    assert resolve_end_status("reject") is CallStatus.REJECTED
    assert resolve_end_status("") is CallStatus.MISSED


def test_talk_seconds_rounds_half_up_and_never_negative():
    assert talk_seconds(START, START + timedelta(seconds=2.5)) == 3
    assert talk_seconds(START, START + timedelta(seconds=2.49)) == 2
    assert talk_seconds(START + timedelta(seconds=5), START) == 0


def test_caller_and_callee_only_overwritten_when_present(aggregator):
    aggregator.process_event(event("ring", caller="0625182755", callee="100"))
    record = aggregator.process_event(event("answer", caller="", callee=""))

    assert record.caller == "0625182755"
    assert record.callee == "100"


def test_unknown_state_keeps_status(aggregator, sink):
    aggregator.process_event(event("ring"))
    record = aggregator.process_event(event("transfer"))

    assert record.status is CallStatus.RINGING
    assert aggregator.active_count == 1
    assert sink.names() == ["new", "updated"]


def test_group_call_answer_cancels_other_ringing_legs(aggregator, store, sink):
    aggregator.process_event(event("ring", extension="100"))
    aggregator.process_event(event("ring", extension="101"))
    aggregator.process_event(event("ring", extension="102"))
    aggregator.process_event(event("ring", call_id="other", extension="102"))

    aggregator.process_event(event("answer", extension="101"))

    for extension in ("100", "102"):
        cancelled = store.get("c1", extension)
        assert cancelled.status is CallStatus.MISSED
        assert cancelled.end_reason == "cancel"
        assert cancelled.end_time == START
    assert store.get("c1", "101").status is CallStatus.ACTIVE
    assert store.get("other", "102").status is CallStatus.RINGING
    assert {(r.id, r.extension) for r in aggregator.active_calls()} == {
        ("c1", "101"),
        ("other", "102"),
    }
    assert sink.names()[-3:] == ["updated", "updated", "updated"]


def test_late_ring_keeps_answered_leg_active(aggregator, store, clock):
    aggregator.process_event(event("ring", extension="100"))
    clock.advance(2)
    aggregator.process_event(event("answer", extension="100"))
    clock.advance(2)
    record = aggregator.process_event(event("ring", extension="100"))

    assert record.status is CallStatus.ACTIVE
    assert record.answer_time == START + timedelta(seconds=2)

    clock.advance(2)
    aggregator.process_event(event("answer", extension="102"))

    answered = store.get("c1", "100")
    assert answered.status is CallStatus.ACTIVE
    assert answered.end_time is None
    assert answered.duration is None
    assert aggregator.get_active("c1", "100") is not None

    clock.advance(4)
    final = aggregator.process_event(event("hangup", extension="100"))

    assert final.status is CallStatus.ANSWERED
    assert final.duration == 8
    assert final.end_time is not None


def test_late_event_for_finalized_leg_is_ignored(aggregator, store, sink):
    aggregator.process_event(event("ring"))
    aggregator.process_event(event("hangup"))
    emitted = len(sink.events)

    assert aggregator.process_event(event("hangup")) is None
    assert aggregator.process_event(event("ring")) is None

    assert aggregator.active_count == 0
    assert len(sink.events) == emitted
    assert store.get("c1", "100").status is CallStatus.MISSED


def test_current_call_tracked_on_extension(aggregator, registry):
    aggregator.process_event(event("ring"))
    assert registry.get("100").current_call == "c1"

    aggregator.process_event(event("hangup"))
    assert registry.get("100").current_call is None


def test_reap_stale_finalizes_old_legs_once(aggregator, store, sink, clock):
    aggregator.process_event(event("ring", call_id="old"))
    clock.advance(200)
    aggregator.process_event(event("ring", call_id="young"))
    clock.advance(101)

    reaped = aggregator.reap_stale()

    assert [r.id for r in reaped] == ["old"]
    old = store.get("old", "100")
    assert old.status is CallStatus.MISSED
    assert old.end_reason == "stale"
    assert old.end_time == clock.now
    assert aggregator.get_active("young", "100") is not None
    assert aggregator.reap_stale() == []
    assert sink.names().count("updated") == 1


def test_reap_stale_keeps_talk_time_of_answered_leg(aggregator, store, clock):
    aggregator.process_event(event("ring"))
    clock.advance(10)
    aggregator.process_event(event("answer"))
    clock.advance(300)

    aggregator.reap_stale()

    record = store.get("c1", "100")
    assert record.status is CallStatus.ANSWERED
    assert record.duration == 300
    assert record.end_reason == "stale"


class FailingStore:
    def upsert(self, record):
        raise RuntimeError("database down")

    async def recover_stale(self):
        raise RuntimeError("database down")


class FailingSink:
    def emit(self, event, payload=None):
        raise RuntimeError("broadcast down")


def test_store_and_sink_failures_do_not_interrupt_processing(clock):
    aggregator = CallAggregator(store=FailingStore(), sink=FailingSink(), clock=clock)

    aggregator.process_event(event("ring"))
    record = aggregator.process_event(event("answer"))

    assert record.status is CallStatus.ACTIVE
    assert aggregator.active_count == 1


@pytest.mark.asyncio
async def test_recover_stale_calls_marks_persisted_live_legs_missed(store, sink, clock):
    leftover = CallRecord(
        id="c0",
        extension="100",
        caller="0625182755",
        callee="100",
        extension_name="Empfang",
        direction="inbound",
        start_time=START - timedelta(hours=1),
        status=CallStatus.ACTIVE,
    )
    store.upsert(leftover)
    aggregator = CallAggregator(store=store, sink=sink, clock=clock)

    assert await aggregator.recover_stale_calls() == 1

    recovered = store.get("c0", "100")
    assert recovered.status is CallStatus.MISSED
    assert recovered.end_reason == "stale"
    assert recovered.end_time is None


@pytest.mark.asyncio
async def test_recover_stale_calls_survives_store_errors(clock):
    aggregator = CallAggregator(store=FailingStore(), clock=clock)

    assert await aggregator.recover_stale_calls() == 0


def test_record_serialization_uses_camel_case(aggregator, clock):
    aggregator.process_event(event("ring"))
    clock.advance(1)
    record = aggregator.process_event(event("answer"))

    data = record.to_dict()

    assert data["extensionName"] == "Empfang"
    assert data["startTime"] == START.isoformat()
    assert data["answerTime"] == (START + timedelta(seconds=1)).isoformat()
    assert data["endTime"] is None
    assert data["status"] == "active"
