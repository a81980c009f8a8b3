"""
Tests for the call stream decoder and the reconnecting stream client.
"""

from contextlib import asynccontextmanager

import pytest

from callmonitor.services.cti import CtiApiError, SseLineDecoder, StreamClient


def test_decoder_handles_sse_framing():
    decoder = SseLineDecoder()

    records = decoder.feed(
        ": keep-alive\n"
        "event: call\n"
        'data: {"uuid": "c1", "state": "ring"}\n'
        "\n"
        '{"uuid": "c2", "state": "answer"}\n'
    )

    assert records == [{"uuid": "c1", "state": "ring"}, {"uuid": "c2", "state": "answer"}]


def test_decoder_buffers_partial_lines():
    decoder = SseLineDecoder()

    assert decoder.feed('data: {"uuid": "c1", ') == []
    assert decoder.feed('"state": "ring"}') == []
    assert decoder.feed("\r\n") == [{"uuid": "c1", "state": "ring"}]


def test_decoder_skips_malformed_lines():
    decoder = SseLineDecoder()

    records = decoder.feed('not json\n[1, 2]\ndata: {"uuid": "c3"}\n')

    assert records == [{"uuid": "c3"}]


class FakeCtiApi:
    """Serves one scripted connection per open_call_stream() call."""

    def __init__(self, connections):
        self.connections = list(connections)
        self.opened = 0
        self.reauthenticated = 0

    @asynccontextmanager
    async def open_call_stream(self):
        self.opened += 1
        connection = self.connections.pop(0)
        if isinstance(connection, Exception):
            raise connection

        async def chunks():
            for chunk in connection:
                if isinstance(chunk, Exception):
                    raise chunk
                yield chunk

        yield chunks()

    async def reauthenticate(self):
        self.reauthenticated += 1


def _client(api, events, sink, sleeps, stop_after_sleeps=1):
    client = None

    async def fake_sleep(seconds):
        sleeps.append(seconds)
        if len(sleeps) >= stop_after_sleeps:
            client.running = False

    client = StreamClient(api, events.append, sink=sink, reconnect_delay=5, sleep=fake_sleep)
    return client


@pytest.mark.asyncio
async def test_events_dispatched_in_order(sink):
    api = FakeCtiApi(
        [
            [
                '{"uuid": "c1", "extension": "100", "state": "RING"}\n{"uuid": "c1", ',
                '"extension": "100", "state": "answer"}\n',
            ]
        ]
    )
    events, sleeps = [], []

    await _client(api, events, sink, sleeps).run()

    assert [(e.id, e.state) for e in events] == [("c1", "ring"), ("c1", "answer")]
    assert sink.names() == ["stream:connected", "stream:disconnected"]
    assert sleeps == [5]


@pytest.mark.asyncio
async def test_records_without_call_id_are_skipped(sink):
    api = FakeCtiApi([['{"state": "ring"}\n{"id": "c9", "state": "end"}\n']])
    events, sleeps = [], []

    await _client(api, events, sink, sleeps).run()

    assert [e.id for e in events] == ["c9"]


@pytest.mark.asyncio
async def test_reconnects_after_errors_with_fixed_delay(sink):
    api = FakeCtiApi(
        [
            CtiApiError("bad gateway", status_code=502),
            ['{"id": "c1", "state": "ring"}\n', ConnectionResetError("reset")],
            ['{"id": "c2", "state": "ring"}\n'],
        ]
    )
    events, sleeps = [], []
    client = _client(api, events, sink, sleeps, stop_after_sleeps=3)

    await client.run()

    assert api.opened == 3
    assert sleeps == [5, 5, 5]
    assert [e.id for e in events] == ["c1", "c2"]
    assert client.reconnects == 3
    assert sink.names() == [
        "stream:disconnected",
        "stream:connected",
        "stream:disconnected",
        "stream:connected",
        "stream:disconnected",
    ]


@pytest.mark.asyncio
async def test_every_failed_attempt_reports_disconnected(sink):
    api = FakeCtiApi(
        [
            CtiApiError("unavailable", status_code=503),
            ConnectionRefusedError("refused"),
        ]
    )
    events, sleeps = [], []
    client = _client(api, events, sink, sleeps, stop_after_sleeps=2)

    await client.run()

    assert api.opened == 2
    assert not client.connected
    assert sink.names() == ["stream:disconnected", "stream:disconnected"]


@pytest.mark.asyncio
async def test_unauthorized_stream_triggers_reauthentication(sink):
    api = FakeCtiApi([CtiApiError("unauthorized", status_code=401)])
    events, sleeps = [], []

    await _client(api, events, sink, sleeps).run()

    assert api.reauthenticated == 1


@pytest.mark.asyncio
async def test_handler_errors_do_not_stop_the_stream(sink):
    api = FakeCtiApi([['{"id": "c1", "state": "ring"}\n{"id": "c2", "state": "ring"}\n']])
    seen, sleeps = [], []

    def handler(event):
        seen.append(event.id)
        if event.id == "c1":
            raise ValueError("boom")

    async def fake_sleep(seconds):
        sleeps.append(seconds)
        client.running = False

    client = StreamClient(api, handler, sink=sink, sleep=fake_sleep)
    await client.run()

    assert seen == ["c1", "c2"]
    assert client.events_processed == 1
