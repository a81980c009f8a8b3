"""
Persistence collaborators for call records.

The aggregator is synchronous, so `upsert` never blocks: the PostgreSQL
store queues a snapshot of the record and a single writer task applies the
upserts in arrival order.
"""

import asyncio
import dataclasses
from typing import Protocol

import psycopg

from callmonitor.db.pool import DatabasePoolManager
from callmonitor.infrastructure.observability.logging import get_logger
from callmonitor.models.domain import END_REASON_STALE, CallRecord, CallStatus

logger = get_logger(__name__)

WRITER_QUEUE_MAX_SIZE = 10_000


class DatabaseError(Exception):
    """Custom exception for database operations."""

    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class CallStore(Protocol):
    def upsert(self, record: CallRecord) -> None: ...

    async def recover_stale(self) -> int: ...


class InMemoryCallStore:
    """Dict-backed store keyed by (id, extension)."""

    def __init__(self):
        self.records: dict[tuple[str, str], CallRecord] = {}
        self.upsert_count = 0

    def upsert(self, record: CallRecord) -> None:
        # Copy, the aggregator keeps mutating its own instance
        self.records[record.key] = dataclasses.replace(record)
        self.upsert_count += 1

    def get(self, call_id: str, extension: str) -> CallRecord | None:
        return self.records.get((call_id, extension))

    def list_active(self) -> list[CallRecord]:
        return [r for r in self.records.values() if not r.is_terminal]

    async def recover_stale(self) -> int:
        recovered = 0
        for record in self.records.values():
            if record.status in (CallStatus.RINGING, CallStatus.ACTIVE) and record.end_time is None:
                record.status = CallStatus.MISSED
                record.end_reason = END_REASON_STALE
                recovered += 1
        return recovered


CREATE_CALLS_TABLE = """
    CREATE TABLE IF NOT EXISTS calls (
        id TEXT NOT NULL,
        extension TEXT NOT NULL,
        caller TEXT NOT NULL DEFAULT '',
        callee TEXT NOT NULL DEFAULT '',
        extension_name TEXT NOT NULL DEFAULT '',
        direction TEXT NOT NULL DEFAULT '',
        start_time TIMESTAMPTZ NOT NULL,
        answer_time TIMESTAMPTZ,
        end_time TIMESTAMPTZ,
        duration INTEGER,
        status TEXT NOT NULL,
        end_reason TEXT,
        PRIMARY KEY (id, extension)
    )
"""

CREATE_CALLS_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_calls_start_time ON calls (start_time)",
    "CREATE INDEX IF NOT EXISTS idx_calls_extension ON calls (extension)",
    "CREATE INDEX IF NOT EXISTS idx_calls_status ON calls (status)",
)

UPSERT_CALL = """
    INSERT INTO calls (
        id, extension, caller, callee, extension_name, direction,
        start_time, answer_time, end_time, duration, status, end_reason
    )
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
    ON CONFLICT (id, extension)
    DO UPDATE SET
        caller = EXCLUDED.caller,
        callee = EXCLUDED.callee,
        extension_name = EXCLUDED.extension_name,
        direction = EXCLUDED.direction,
        answer_time = EXCLUDED.answer_time,
        end_time = EXCLUDED.end_time,
        duration = EXCLUDED.duration,
        status = EXCLUDED.status,
        end_reason = EXCLUDED.end_reason
"""

RECOVER_STALE_CALLS = """
    UPDATE calls
    SET status = 'missed', end_reason = 'stale'
    WHERE status IN ('ringing', 'active') AND end_time IS NULL
"""


def _upsert_params(record: CallRecord) -> tuple:
    return (
        record.id,
        record.extension,
        record.caller,
        record.callee,
        record.extension_name,
        record.direction,
        record.start_time,
        record.answer_time,
        record.end_time,
        record.duration,
        record.status.value,
        record.end_reason,
    )


class PostgresCallStore:
    """PostgreSQL-backed call store with an ordered write-behind queue."""

    def __init__(self, pool: DatabasePoolManager):
        self._pool = pool
        self._queue: asyncio.Queue[CallRecord] = asyncio.Queue(maxsize=WRITER_QUEUE_MAX_SIZE)
        self._writer_task: asyncio.Task | None = None
        self.dropped_writes = 0
        self.failed_writes = 0

    async def ensure_schema(self) -> None:
        try:
            async with self._pool.connection() as conn:
                await conn.execute(CREATE_CALLS_TABLE)
                for statement in CREATE_CALLS_INDEXES:
                    await conn.execute(statement)
        except psycopg.Error as e:
            logger.error("Failed to create calls schema", error=str(e))
            raise DatabaseError(f"Schema setup failed: {e}", operation="ensure_schema") from e

    def start(self) -> None:
        if self._writer_task is None or self._writer_task.done():
            self._writer_task = asyncio.create_task(self._run_writer(), name="call-store-writer")

    async def close(self) -> None:
        """Flush queued writes and stop the writer."""
        if self._writer_task is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=10.0)
        except TimeoutError:
            logger.warning("Timed out flushing call writes", pending=self._queue.qsize())
        self._writer_task.cancel()
        try:
            await self._writer_task
        except asyncio.CancelledError:
            pass
        self._writer_task = None

    def upsert(self, record: CallRecord) -> None:
        try:
            self._queue.put_nowait(dataclasses.replace(record))
        except asyncio.QueueFull:
            self.dropped_writes += 1
            logger.error(
                "Call write queue full, dropping upsert",
                call_id=record.id,
                extension=record.extension,
                status=record.status.value,
            )

    async def recover_stale(self) -> int:
        try:
            async with self._pool.connection() as conn:
                cursor = await conn.execute(RECOVER_STALE_CALLS)
                recovered = cursor.rowcount or 0
        except psycopg.Error as e:
            logger.error("Stale call recovery failed", error=str(e))
            raise DatabaseError(f"Stale recovery failed: {e}", operation="recover_stale") from e

        if recovered:
            logger.info("Recovered stale calls from previous run", recovered=recovered)
        return recovered

    async def _run_writer(self) -> None:
        while True:
            record = await self._queue.get()
            try:
                await self._write(record)
            except Exception as e:
                self.failed_writes += 1
                logger.error(
                    "Failed to persist call record",
                    call_id=record.id,
                    extension=record.extension,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            finally:
                self._queue.task_done()

    async def _write(self, record: CallRecord) -> None:
        async with self._pool.connection() as conn:
            await conn.execute(UPSERT_CALL, _upsert_params(record))
