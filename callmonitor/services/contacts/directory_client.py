"""
HTTP client for the upstream contact directory (projectfacts).

The directory exposes phone numbers as "contact fields": a paginated list
endpoint returns captions and detail hrefs, and each detail document carries
the number together with the owning contact.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx

from callmonitor.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Request timeouts and retry configuration
REQUEST_TIMEOUT = 30  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 2
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}

DEFAULT_PAGE_SIZE = 200


class DirectoryServiceError(Exception):
    """Custom exception for contact directory API errors."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        status_code: int | None = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code
        self.recoverable = recoverable


@dataclass(frozen=True, slots=True)
class ContactFieldItem:
    """List entry of a phone contact field."""

    caption: str
    href: str
    value: int | None = None


class DirectoryClient:
    """
    Client for the directory's list-then-detail contact field API.

    Credentials are sent as HTTP Basic auth (device id, API token).
    """

    def __init__(
        self,
        base_url: str,
        device_id: str,
        token: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self._client = self._create_client(device_id, token, transport)

    def _create_client(
        self, device_id: str, token: str, transport: httpx.AsyncBaseTransport | None
    ) -> httpx.AsyncClient:
        """Create async HTTP client for the directory API."""
        timeout = httpx.Timeout(REQUEST_TIMEOUT)
        limits = httpx.Limits(max_keepalive_connections=20, max_connections=50)
        return httpx.AsyncClient(
            timeout=timeout,
            limits=limits,
            auth=httpx.BasicAuth(device_id, token),
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _request_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with retry and backoff."""
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = await self._client.request(method, url, **kwargs)
                if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                    backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                    logger.debug(
                        "Directory API retrying request",
                        attempt=attempt,
                        status_code=response.status_code,
                        backoff_seconds=backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                return response
            except httpx.RequestError as e:
                if attempt >= MAX_RETRIES:
                    raise DirectoryServiceError(
                        f"Directory API unreachable: {e}", operation="request"
                    ) from e
                backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                logger.debug(
                    "Directory API request error, retrying",
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
        raise DirectoryServiceError("Directory API retry loop exhausted", operation="request")

    async def _get_json(self, url: str, operation: str) -> Any:
        response = await self._request_with_retry("GET", url)

        if not response.is_success:
            logger.warning(
                f"Directory API {operation} failed",
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )
            raise DirectoryServiceError(
                f"Directory API error (HTTP {response.status_code})",
                operation=operation,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise DirectoryServiceError(
                f"Invalid directory response format: {e}", operation=operation
            ) from e

    async def list_contact_fields(self, field_type: str) -> list[ContactFieldItem]:
        """
        List all contact fields of one phone type, following pagination.

        Args:
            field_type: Contact field type, e.g. "TEL" or "TEL_MOBILE"

        Returns:
            list[ContactFieldItem]: All list entries in directory order

        Raises:
            DirectoryServiceError: If any page cannot be fetched
        """
        items: list[ContactFieldItem] = []
        offset = 0

        while True:
            url = (
                f"{self.base_url}/api/contactfield;offset={offset};limit={self.page_size}"
                f"?type={field_type}"
            )
            data = await self._get_json(url, "list_contact_fields")
            if not isinstance(data, dict):
                raise DirectoryServiceError(
                    "Unexpected contact field page format", operation="list_contact_fields"
                )

            page = data.get("items") or []
            for raw in page:
                href = raw.get("href") if isinstance(raw, dict) else None
                if not href:
                    continue
                items.append(
                    ContactFieldItem(
                        caption=str(raw.get("caption") or ""),
                        href=href,
                        value=raw.get("value"),
                    )
                )

            total = data.get("size")
            if len(page) < self.page_size:
                break
            if isinstance(total, int) and offset + len(page) >= total:
                break
            offset += self.page_size

        logger.debug("Contact fields listed", field_type=field_type, item_count=len(items))
        return items

    async def get_contact_field(self, href: str) -> dict[str, Any]:
        """
        Fetch the detail document of one contact field.

        Raises:
            DirectoryServiceError: If the detail cannot be fetched
        """
        url = href if href.startswith("http") else f"{self.base_url}{href}"
        data = await self._get_json(url, "get_contact_field")
        return data if isinstance(data, dict) else {}
