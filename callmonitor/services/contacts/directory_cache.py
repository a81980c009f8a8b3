"""
Periodically reloaded snapshot of all phone numbers in the contact directory.

A refresh lists every phone contact field, fetches the details with a
bounded worker pool and only then publishes a new immutable snapshot.
Readers always see either the previous or the next complete snapshot.
"""

import asyncio
import time
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from callmonitor.infrastructure.observability.logging import get_logger
from callmonitor.models.domain import (
    DirectoryContact,
    DirectoryEntry,
    DirectorySnapshot,
)
from callmonitor.services.contacts.directory_client import (
    ContactFieldItem,
    DirectoryClient,
    DirectoryServiceError,
)
from callmonitor.services.phone import PhoneNormalizer, phone_normalizer

logger = get_logger(__name__)

DEFAULT_PHONE_TYPES = ("TEL", "TEL_VOICE", "TEL_MOBILE")
DEFAULT_CONCURRENCY = 10


class DirectoryCache:
    """Holds the current DirectorySnapshot and rebuilds it on demand."""

    def __init__(
        self,
        client: DirectoryClient | None = None,
        normalizer: PhoneNormalizer | None = None,
        phone_types: Sequence[str] = DEFAULT_PHONE_TYPES,
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        self._client = client
        self._normalizer = normalizer or phone_normalizer
        self._phone_types = tuple(phone_types)
        self._concurrency = max(1, concurrency)
        self._snapshot: DirectorySnapshot | None = None
        self._refreshing = False
        self.last_refresh_error: str | None = None

    @property
    def snapshot(self) -> DirectorySnapshot | None:
        """Latest complete snapshot, or None before the first successful load."""
        return self._snapshot

    @property
    def is_ready(self) -> bool:
        return self._snapshot is not None

    @property
    def client(self) -> DirectoryClient | None:
        return self._client

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    def replace(self, entries: Iterable[tuple[str, DirectoryContact]]) -> DirectorySnapshot:
        """Build a snapshot from (raw number, contact) pairs and install it."""
        snapshot = self._build_snapshot(entries)
        self._snapshot = snapshot
        return snapshot

    def clear(self) -> None:
        self._snapshot = None

    async def refresh(self) -> bool:
        """
        Reload the whole directory and swap in the new snapshot.

        Returns:
            bool: True if a new snapshot was published. On any directory
            error the previous snapshot is kept and False is returned.
        """
        if self._client is None:
            logger.debug("Contact directory not configured, skipping refresh")
            return False

        if self._refreshing:
            logger.warning("Directory refresh already running, skipping this iteration")
            return False

        start_time = time.time()
        self._refreshing = True

        try:
            items: list[ContactFieldItem] = []
            for phone_type in self._phone_types:
                items.extend(await self._client.list_contact_fields(phone_type))

            logger.info("Directory phone entries listed, fetching details", item_count=len(items))

            pairs = await self._fetch_details(items)
            snapshot = self._build_snapshot(pairs)

            # Single reference swap, readers never see a partial directory
            self._snapshot = snapshot
            self.last_refresh_error = None

            logger.info(
                "Directory snapshot published",
                entry_count=len(snapshot),
                duration_ms=round((time.time() - start_time) * 1000, 1),
            )
            return True

        except DirectoryServiceError as e:
            self.last_refresh_error = str(e)
            logger.warning(
                "Directory refresh failed, keeping previous snapshot",
                error=str(e),
                operation=e.operation,
                previous_entries=len(self._snapshot) if self._snapshot else 0,
            )
            return False
        except Exception as e:
            self.last_refresh_error = str(e)
            logger.error(
                "Unexpected error refreshing directory",
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        finally:
            self._refreshing = False

    async def _fetch_details(
        self, items: list[ContactFieldItem]
    ) -> list[tuple[str, DirectoryContact]]:
        """Fetch detail documents with bounded concurrency, preserving list order."""
        semaphore = asyncio.Semaphore(self._concurrency)

        tasks = [self._fetch_detail_with_semaphore(semaphore, item) for item in items]

        # Let every worker finish before deciding on the outcome
        results = await asyncio.gather(*tasks, return_exceptions=True)

        pairs: list[tuple[str, DirectoryContact]] = []
        for result in results:
            if isinstance(result, BaseException):
                if isinstance(result, DirectoryServiceError):
                    raise result
                raise DirectoryServiceError(
                    f"Detail fetch failed: {result}", operation="get_contact_field"
                ) from result
            if result is not None:
                pairs.append(result)
        return pairs

    async def _fetch_detail_with_semaphore(
        self, semaphore: asyncio.Semaphore, item: ContactFieldItem
    ) -> tuple[str, DirectoryContact] | None:
        async with semaphore:
            detail = await self._client.get_contact_field(item.href)

        value = detail.get("value")
        contact = detail.get("contact")
        if not value or not isinstance(contact, dict):
            logger.debug("Skipping contact field without number or contact", href=item.href)
            return None

        try:
            contact_id = int(contact.get("value") or 0)
        except (TypeError, ValueError):
            contact_id = 0

        return (
            str(value),
            DirectoryContact(name=str(contact.get("caption") or ""), contact_id=contact_id),
        )

    def _build_snapshot(
        self, pairs: Iterable[tuple[str, DirectoryContact]]
    ) -> DirectorySnapshot:
        entries = []
        for raw_number, contact in pairs:
            normalized = self._normalizer.normalize(raw_number)
            if not normalized:
                continue
            entries.append(
                DirectoryEntry(normalized_number=normalized, raw_number=raw_number, contact=contact)
            )
        return DirectorySnapshot(entries=tuple(entries), loaded_at=datetime.now(UTC))
