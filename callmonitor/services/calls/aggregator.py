"""
Call state aggregator.

Turns the raw CTI event stream into one CallRecord per (call id, extension)
leg. Live legs are kept in an active table; every transition is persisted
through the store and announced on the broadcast channel.

State machine:
    ringing -> active -> answered
    ringing | active -> missed | busy | rejected

All methods are synchronous and run on the event loop thread; the stream
reader and the reaper job are the only callers, so no locking is needed.
"""

import math
from collections import OrderedDict
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from callmonitor.db.call_store import CallStore
from callmonitor.infrastructure.observability.logging import get_logger, log_call_transition
from callmonitor.models.domain import (
    ANSWER_STATES,
    END_REASON_CANCEL,
    END_REASON_STALE,
    HANGUP_STATES,
    RINGING_STATES,
    CallEvent,
    CallRecord,
    CallStatus,
)
from callmonitor.services.calls.broadcast import BroadcastEvent, CallEventSink
from callmonitor.services.cti.extension_registry import ExtensionRegistry

logger = get_logger(__name__)

Clock = Callable[[], datetime]

DEFAULT_STALE_AFTER = timedelta(minutes=5)

# Finalized legs remembered to swallow late duplicates of terminal events
FINALIZED_KEYS_MAX = 2048

_END_STATUS_BY_ERROR = {
    "busy": CallStatus.BUSY,
    "reject": CallStatus.REJECTED,
}


def utc_now() -> datetime:
    return datetime.now(UTC)


def resolve_end_status(error: str | None) -> CallStatus:
    """Map a hangup error code to the terminal status of an unanswered leg."""
    return _END_STATUS_BY_ERROR.get((error or "").lower(), CallStatus.MISSED)


def talk_seconds(answer_time: datetime, end_time: datetime) -> int:
    """Whole seconds between answer and end, rounded half up, never negative."""
    seconds = (end_time - answer_time).total_seconds()
    return max(0, math.floor(seconds + 0.5))


class CallAggregator:
    """Owns the active-call table and applies stream events to it."""

    def __init__(
        self,
        store: CallStore,
        sink: CallEventSink | None = None,
        extensions: ExtensionRegistry | None = None,
        clock: Clock = utc_now,
        stale_after: timedelta = DEFAULT_STALE_AFTER,
    ):
        self._store = store
        self._sink = sink
        self._extensions = extensions
        self._clock = clock
        self.stale_after = stale_after

        self._active: dict[tuple[str, str], CallRecord] = {}
        self._finalized: OrderedDict[tuple[str, str], None] = OrderedDict()
        self.last_event_time: datetime | None = None

    @property
    def active_count(self) -> int:
        return len(self._active)

    def active_calls(self) -> list[CallRecord]:
        return list(self._active.values())

    def get_active(self, call_id: str, extension: str) -> CallRecord | None:
        return self._active.get((call_id, extension))

    def process_event(self, event: CallEvent) -> CallRecord | None:
        """
        Apply one stream event to its call leg.

        Returns:
            The updated record, or None when the event belongs to a leg that
            was already finalized and is ignored.
        """
        now = self._clock()
        self.last_event_time = now
        key = (event.id, event.extension)

        record = self._active.get(key)
        is_new = record is None

        if record is None:
            if key in self._finalized:
                logger.debug(
                    "Ignoring event for finalized call leg",
                    call_id=event.id,
                    extension=event.extension,
                    state=event.state,
                )
                return None
            record = CallRecord(
                id=event.id,
                extension=event.extension,
                caller=event.caller,
                callee=event.callee,
                extension_name=self._extension_name(event.extension),
                direction=event.direction,
                start_time=now,
                status=CallStatus.RINGING,
            )

        # Caller/callee may arrive incrementally
        if event.caller:
            record.caller = event.caller
        if event.callee:
            record.callee = event.callee
        if event.direction and not record.direction:
            record.direction = event.direction

        state = event.state
        if state in RINGING_STATES:
            # An answered leg never goes back to ringing
            if record.answer_time is None:
                record.status = CallStatus.RINGING
            else:
                logger.debug("Ignoring late ring for answered leg", call_id=event.id, state=state)
        elif state in ANSWER_STATES:
            record.status = CallStatus.ACTIVE
            if record.answer_time is None:
                record.answer_time = now
            self._cancel_parallel_ringing(record, now)
        elif state in HANGUP_STATES:
            self._finalize(record, now, end_reason=event.error, error=event.error)
        elif state:
            logger.debug("Unknown call state", call_id=event.id, state=state)

        if record.is_terminal:
            self._active.pop(key, None)
        else:
            self._active[key] = record
            self._set_current_call(record)

        self._persist_and_emit(record, is_new)
        return record

    def reap_stale(self) -> list[CallRecord]:
        """
        Finalize live legs that started longer ago than the staleness threshold.

        Returns:
            list[CallRecord]: The legs finalized in this pass
        """
        now = self._clock()
        stale = [
            record
            for record in self._active.values()
            if now - record.start_time > self.stale_after
        ]

        for record in stale:
            self._active.pop(record.key, None)
            self._finalize(record, now, end_reason=END_REASON_STALE, error=None)
            logger.warning(
                "Reaped stale call leg",
                call_id=record.id,
                extension=record.extension,
                status=record.status.value,
                age_seconds=round((now - record.start_time).total_seconds()),
            )
            self._persist_and_emit(record, is_new=False)

        return stale

    async def recover_stale_calls(self) -> int:
        """Close out legs a previous process left ringing/active in the store."""
        try:
            recovered = await self._store.recover_stale()
        except Exception as e:
            logger.error("Startup stale call recovery failed", error=str(e))
            return 0

        if recovered:
            logger.info("Stale calls from previous run marked missed", recovered=recovered)
        return recovered

    def _cancel_parallel_ringing(self, answered: CallRecord, now: datetime) -> None:
        """Another extension picked up a group call: the other ringing legs are missed."""
        cancelled = [
            record
            for record in self._active.values()
            if record.id == answered.id
            and record.extension != answered.extension
            and record.status is CallStatus.RINGING
            and record.answer_time is None
        ]

        for record in cancelled:
            self._active.pop(record.key, None)
            record.status = CallStatus.MISSED
            record.end_reason = END_REASON_CANCEL
            record.end_time = now
            self._remember_finalized(record)
            logger.debug(
                "Group call leg cancelled",
                call_id=record.id,
                extension=record.extension,
                answered_by=answered.extension,
            )
            self._persist_and_emit(record, is_new=False)

    def _finalize(
        self, record: CallRecord, now: datetime, end_reason: str | None, error: str | None
    ) -> None:
        record.end_time = now
        if record.answer_time is not None:
            record.status = CallStatus.ANSWERED
            record.duration = talk_seconds(record.answer_time, now)
        else:
            record.status = resolve_end_status(error)
        record.end_reason = end_reason
        self._remember_finalized(record)

    def _remember_finalized(self, record: CallRecord) -> None:
        self._finalized[record.key] = None
        self._finalized.move_to_end(record.key)
        while len(self._finalized) > FINALIZED_KEYS_MAX:
            self._finalized.popitem(last=False)
        if self._extensions is not None:
            self._extensions.clear_current_call(record.extension, record.id)

    def _set_current_call(self, record: CallRecord) -> None:
        if self._extensions is not None:
            self._extensions.set_current_call(record.extension, record.id)

    def _extension_name(self, extension: str) -> str:
        if self._extensions is not None:
            name = self._extensions.name_for(extension)
            if name:
                return name
        return extension

    def _persist_and_emit(self, record: CallRecord, is_new: bool) -> None:
        try:
            self._store.upsert(record)
        except Exception as e:
            logger.error(
                "Failed to persist call record",
                call_id=record.id,
                extension=record.extension,
                error=str(e),
                error_type=type(e).__name__,
            )

        log_call_transition(record.id, record.extension, record.status.value, is_new)

        if self._sink is None:
            return
        event = BroadcastEvent.CALL_NEW if is_new else BroadcastEvent.CALL_UPDATED
        try:
            self._sink.emit(event.value, record)
        except Exception as e:
            logger.error(
                "Failed to emit call update",
                call_id=record.id,
                extension=record.extension,
                error=str(e),
            )
