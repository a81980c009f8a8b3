"""
Domain models for the contact directory and number resolution.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class DirectoryContact:
    """A contact as listed by the upstream directory."""

    name: str
    contact_id: int


@dataclass(frozen=True, slots=True)
class DirectoryEntry:
    """One phone number of a directory contact, pre-normalized for matching."""

    normalized_number: str
    raw_number: str
    contact: DirectoryContact


@dataclass(frozen=True, slots=True)
class DirectorySnapshot:
    """Immutable, fully built view of the directory; replaced as a whole."""

    entries: tuple[DirectoryEntry, ...]
    loaded_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(slots=True)
class ContactMatch:
    """Result of resolving a raw phone number."""

    name: str
    contact_id: int
    fuzzy: int | None = None  # trailing digits trimmed, 1..3
    city: str | None = None
    formatted: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "contactId": self.contact_id}
        if self.fuzzy is not None:
            data["fuzzy"] = self.fuzzy
        if self.city is not None:
            data["city"] = self.city
        if self.formatted is not None:
            data["formatted"] = self.formatted
        return data
