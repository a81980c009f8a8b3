"""
Token management for the CTI API.

Login exchanges username/password for an access/refresh token pair. A
background task refreshes the pair on a fixed interval; when the refresh
is rejected the manager logs in again instead of giving up.
"""

import asyncio
from dataclasses import dataclass

import httpx

from callmonitor.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

LOGIN_PATH = "/v1/login"
DEFAULT_REFRESH_INTERVAL_SECONDS = 240.0


class CtiAuthError(Exception):
    """Raised when the CTI API cannot be authenticated against."""

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
class CtiTokens:
    access_token: str
    refresh_token: str


def _parse_tokens(response: httpx.Response, operation: str) -> CtiTokens:
    try:
        data = response.json()
        return CtiTokens(access_token=data["access-token"], refresh_token=data["refresh-token"])
    except (ValueError, KeyError, TypeError) as e:
        raise CtiAuthError(
            f"Invalid token response: {e}", operation=operation, status_code=response.status_code
        ) from e


class TokenManager:
    """Holds the current CTI token pair and keeps it fresh."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        base_url: str,
        username: str | None,
        password: str | None,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
    ):
        self._http = http
        self.base_url = base_url.rstrip("/")
        self._username = username
        self._password = password
        self.refresh_interval = refresh_interval
        self._tokens: CtiTokens | None = None
        self._refresh_task: asyncio.Task | None = None

    @property
    def is_authenticated(self) -> bool:
        return self._tokens is not None

    @property
    def access_token(self) -> str:
        if self._tokens is None:
            raise CtiAuthError("Not authenticated, call login() first", operation="access_token")
        return self._tokens.access_token

    async def login(self) -> CtiTokens:
        """
        Log in with username and password.

        Raises:
            CtiAuthError: If credentials are missing or rejected
        """
        if not self._username or not self._password:
            raise CtiAuthError(
                "CTI_API_USERNAME and CTI_API_PASSWORD must be configured",
                operation="login",
                recoverable=False,
            )

        try:
            response = await self._http.post(
                f"{self.base_url}{LOGIN_PATH}",
                json={"username": self._username, "password": self._password},
                headers={"Content-Type": "application/json", "Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise CtiAuthError(f"Login request failed: {e}", operation="login") from e

        if not response.is_success:
            raise CtiAuthError(
                f"Login failed (HTTP {response.status_code}): {response.text[:200]}",
                operation="login",
                status_code=response.status_code,
            )

        self._tokens = _parse_tokens(response, "login")
        logger.info("CTI login successful")
        return self._tokens

    async def refresh(self) -> CtiTokens:
        """
        Refresh the token pair, falling back to a full login on failure.

        Raises:
            CtiAuthError: If neither refresh nor re-login succeed
        """
        if self._tokens is None:
            return await self.login()

        try:
            response = await self._http.put(
                f"{self.base_url}{LOGIN_PATH}",
                headers={
                    "Accept": "application/json",
                    "Authorization": f"Bearer {self._tokens.refresh_token}",
                },
            )
        except httpx.HTTPError as e:
            logger.warning("Token refresh request failed, logging in again", error=str(e))
            return await self.login()

        if not response.is_success:
            logger.warning(
                "Token refresh rejected, logging in again",
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )
            return await self.login()

        try:
            self._tokens = _parse_tokens(response, "refresh")
        except CtiAuthError as e:
            logger.warning("Token refresh returned no tokens, logging in again", error=str(e))
            return await self.login()

        logger.debug("CTI token refreshed")
        return self._tokens

    def start_auto_refresh(self) -> None:
        """Start the periodic refresh task (idempotent)."""
        if self._refresh_task is not None and not self._refresh_task.done():
            return
        self._refresh_task = asyncio.create_task(self._auto_refresh_loop(), name="cti-token-refresh")
        logger.info("CTI token auto-refresh enabled", interval_seconds=self.refresh_interval)

    async def stop_auto_refresh(self) -> None:
        if self._refresh_task is None:
            return
        self._refresh_task.cancel()
        try:
            await self._refresh_task
        except asyncio.CancelledError:
            pass
        self._refresh_task = None

    async def _auto_refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            try:
                await self.refresh()
            except Exception as e:
                logger.error(
                    "CTI token auto-refresh failed", error=str(e), error_type=type(e).__name__
                )
