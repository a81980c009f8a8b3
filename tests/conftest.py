from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from callmonitor.db.call_store import InMemoryCallStore
from callmonitor.models.domain import DirectoryContact
from callmonitor.services.calls import CallAggregator
from callmonitor.services.contacts import ContactResolver, DirectoryCache
from callmonitor.services.cti import ExtensionRegistry
from callmonitor.services.phone import PhoneNormalizer

START = datetime(2025, 3, 3, 9, 0, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class RecordingSink:
    def __init__(self):
        self.events: list[tuple[str, Any]] = []

    def emit(self, event: str, payload: Any = None) -> None:
        self.events.append((event, payload))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def store():
    return InMemoryCallStore()


@pytest.fixture
def registry():
    registry = ExtensionRegistry()
    registry.load(
        [
            {"extension_number": "100", "name": "Empfang", "uuid": "ext-100"},
            {"extension_number": "101", "name": "Vertrieb", "uuid": "ext-101"},
            {"extension_number": "102", "name": "", "uuid": "ext-102"},
        ]
    )
    return registry


@pytest.fixture
def aggregator(store, sink, registry, clock):
    return CallAggregator(store=store, sink=sink, extensions=registry, clock=clock)


@pytest.fixture
def normalizer():
    return PhoneNormalizer()


@pytest.fixture
def make_resolver(normalizer):
    def _make(entries: list[tuple[str, str, int]]) -> ContactResolver:
        cache = DirectoryCache(normalizer=normalizer)
        cache.replace(
            (raw, DirectoryContact(name=name, contact_id=contact_id))
            for raw, name, contact_id in entries
        )
        return ContactResolver(cache, normalizer)

    return _make
