"""
CTI (PBX provider) REST client.

Wraps the extension data/state endpoints and opens the long-lived call
event stream. Every request carries the current bearer token from the
TokenManager; a 401 triggers one token refresh and a single retry.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from callmonitor.infrastructure.observability.logging import get_logger
from callmonitor.services.cti.auth import TokenManager

logger = get_logger(__name__)

# Request timeouts and retry configuration
REQUEST_TIMEOUT = 30  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 2
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}

EXTENSIONS_PATH = "/v1/extensions/phone/data"
LINE_STATES_PATH = "/v1/extensions/phone/states"
CALL_STREAM_PATH = "/v1/extensions/phone/calls"


class CtiApiError(Exception):
    """Custom exception for CTI API errors."""

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


def create_http_client(
    timeout: float = REQUEST_TIMEOUT, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    """Create the async HTTP client shared by the token manager and the API client."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
        transport=transport,
    )


class CtiApiClient:
    """Authenticated access to the CTI extension endpoints."""

    def __init__(self, http: httpx.AsyncClient, tokens: TokenManager, base_url: str):
        self._http = http
        self._tokens = tokens
        self.base_url = base_url.rstrip("/")

    async def reauthenticate(self) -> None:
        await self._tokens.refresh()

    def _headers(self, accept: str = "application/json") -> dict[str, str]:
        return {"Authorization": f"Bearer {self._tokens.access_token}", "Accept": accept}

    async def _request_with_retry(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Execute an authenticated request with retry, backoff and one re-auth on 401."""
        url = f"{self.base_url}{path}"
        reauthenticated = False
        attempt = 0

        while attempt < MAX_RETRIES:
            attempt += 1
            try:
                response = await self._http.request(method, url, headers=self._headers(), **kwargs)
            except httpx.RequestError as e:
                if attempt >= MAX_RETRIES:
                    raise CtiApiError(f"CTI API unreachable: {e}", operation=path) from e
                backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                logger.debug(
                    "CTI API request error, retrying",
                    path=path,
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
                continue

            if response.status_code == 401 and not reauthenticated:
                logger.info("CTI API token rejected, refreshing", path=path)
                reauthenticated = True
                attempt -= 1
                await self.reauthenticate()
                continue

            if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                logger.debug(
                    "CTI API retrying request",
                    path=path,
                    attempt=attempt,
                    status_code=response.status_code,
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
                continue

            return response

        raise CtiApiError("CTI API retry loop exhausted", operation=path)

    async def _get_json(self, path: str) -> Any:
        response = await self._request_with_retry("GET", path)

        if not response.is_success:
            logger.warning(
                "CTI API request failed",
                path=path,
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )
            raise CtiApiError(
                f"CTI API GET {path} failed (HTTP {response.status_code})",
                operation=path,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise CtiApiError(f"Invalid CTI response format: {e}", operation=path) from e

    async def _get_list(self, path: str) -> list[dict[str, Any]]:
        data = await self._get_json(path)
        if not isinstance(data, list):
            raise CtiApiError("Expected a JSON list", operation=path)
        return [item for item in data if isinstance(item, dict)]

    async def get_extensions(self) -> list[dict[str, Any]]:
        """Configured extensions: items with uuid, extension_number and name."""
        return await self._get_list(EXTENSIONS_PATH)

    async def get_line_states(self) -> list[dict[str, Any]]:
        """Current line/presence state per extension."""
        return await self._get_list(LINE_STATES_PATH)

    @asynccontextmanager
    async def open_call_stream(self) -> AsyncIterator[AsyncIterator[str]]:
        """
        Open the call event stream.

        Yields an async iterator over decoded text chunks. Reads never time
        out, the connection idles between calls.

        Raises:
            CtiApiError: If the stream cannot be opened
        """
        url = f"{self.base_url}{CALL_STREAM_PATH}"
        timeout = httpx.Timeout(REQUEST_TIMEOUT, read=None)

        async with self._http.stream(
            "GET", url, headers=self._headers("text/event-stream"), timeout=timeout
        ) as response:
            if not response.is_success:
                body = (await response.aread()).decode("utf-8", errors="replace")
                raise CtiApiError(
                    f"CTI call stream failed (HTTP {response.status_code}): {body[:200]}",
                    operation="open_call_stream",
                    status_code=response.status_code,
                )
            yield response.aiter_text()
