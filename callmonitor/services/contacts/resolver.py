"""
Phone number to contact resolution against the directory snapshot.

Resolution order:
    1. exact match (normalized equality or suffix with enough overlap)
    2. fuzzy match for landlines, trimming up to 3 trailing digits from
       either side to absorb Durchwahl/routing drift
    3. fallback label: formatted number plus city or number type

Both passes scan the snapshot linearly. An index keyed on number suffixes
would serve larger directories with the same results.
"""

from collections.abc import Iterable

from callmonitor.infrastructure.observability.logging import get_logger
from callmonitor.models.domain import ContactMatch, DirectoryEntry
from callmonitor.services.contacts.directory_cache import DirectoryCache
from callmonitor.services.phone import (
    MIN_MATCH_DIGITS,
    PhoneNormalizer,
    PhoneType,
    phone_normalizer,
)

logger = get_logger(__name__)

MAX_FUZZY_DIGITS = 3

LABEL_MOBILE = "Mobil"
LABEL_SPECIAL = "Sonderrufnummer"


class ContactResolver:
    """Resolves raw phone numbers to directory contacts or descriptive labels."""

    def __init__(self, cache: DirectoryCache, normalizer: PhoneNormalizer | None = None):
        self._cache = cache
        self._normalizer = normalizer or phone_normalizer

    def resolve(self, raw_number: str) -> ContactMatch | None:
        """
        Resolve one raw number.

        Args:
            raw_number: Phone number as received from the PBX or a user

        Returns:
            ContactMatch or None for empty input. Unmatched numbers resolve to
            a match with an empty name carrying the formatted number and label.
        """
        if not raw_number or not raw_number.strip():
            return None

        normalized = self._normalizer.normalize(raw_number)
        phone_type = self._normalizer.classify(normalized)
        formatted = self._normalizer.format_nice(raw_number)
        label = self._label(normalized, phone_type)

        snapshot = self._cache.snapshot
        if snapshot is not None and normalized:
            entry = self._find_exact(normalized, snapshot.entries)
            if entry is not None:
                return ContactMatch(
                    name=entry.contact.name,
                    contact_id=entry.contact.contact_id,
                    city=label,
                    formatted=formatted,
                )

            if phone_type is PhoneType.LANDLINE:
                fuzzy_hit = self._find_fuzzy(normalized, snapshot.entries)
                if fuzzy_hit is not None:
                    entry, trimmed = fuzzy_hit
                    logger.debug(
                        "Fuzzy contact match",
                        number=normalized,
                        directory_number=entry.normalized_number,
                        fuzzy_digits=trimmed,
                    )
                    return ContactMatch(
                        name=entry.contact.name,
                        contact_id=entry.contact.contact_id,
                        fuzzy=trimmed,
                        city=label,
                        formatted=formatted,
                    )

        return ContactMatch(
            name="",
            contact_id=0,
            city=label,
            formatted=formatted or raw_number.strip(),
        )

    def resolve_one(self, raw_number: str) -> ContactMatch | None:
        return self.resolve(raw_number)

    def resolve_many(self, numbers: Iterable[str]) -> dict[str, ContactMatch]:
        """Resolve several numbers, keyed by the original input; empty strings are skipped."""
        results: dict[str, ContactMatch] = {}
        for number in numbers:
            if not number:
                continue
            match = self.resolve(number)
            if match is not None:
                results[number] = match
        return results

    def _find_exact(
        self, normalized: str, entries: tuple[DirectoryEntry, ...]
    ) -> DirectoryEntry | None:
        for entry in entries:
            if self._normalizer.match_normalized(normalized, entry.normalized_number):
                return entry
        return None

    def _find_fuzzy(
        self, normalized: str, entries: tuple[DirectoryEntry, ...]
    ) -> tuple[DirectoryEntry, int] | None:
        match = self._normalizer.match_normalized

        for trim in range(1, MAX_FUZZY_DIGITS + 1):
            shortened = (
                normalized[:-trim] if len(normalized) - trim >= MIN_MATCH_DIGITS else None
            )

            for entry in entries:
                # Input carries extra trailing digits
                if shortened is not None and match(shortened, entry.normalized_number):
                    return entry, trim

                # Directory entry carries extra trailing digits
                entry_number = entry.normalized_number
                if len(entry_number) - trim >= MIN_MATCH_DIGITS and match(
                    normalized, entry_number[:-trim]
                ):
                    return entry, trim

        return None

    def _label(self, normalized: str, phone_type: PhoneType) -> str | None:
        if phone_type is PhoneType.MOBILE:
            return LABEL_MOBILE
        if phone_type is PhoneType.SPECIAL:
            return LABEL_SPECIAL
        if phone_type is PhoneType.LANDLINE:
            return self._normalizer.lookup_city(normalized)
        return None
