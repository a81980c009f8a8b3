"""
Service container for the call monitor.

Builds every collaborator once from settings and owns their lifecycle:
database pool and store, startup recovery, CTI login and token refresh,
the stream reader, the presence poller and the scheduled jobs.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

import httpx

from callmonitor.config import Settings, settings as default_settings
from callmonitor.db.call_store import CallStore, InMemoryCallStore, PostgresCallStore
from callmonitor.db.pool import DatabasePoolManager
from callmonitor.infrastructure.observability.logging import get_logger
from callmonitor.jobs.directory_refresh_job import start_directory_refresh_scheduler
from callmonitor.jobs.stale_call_reaper_job import start_stale_call_reaper_scheduler
from callmonitor.services.calls import CallAggregator, EventBroadcaster, utc_now
from callmonitor.services.contacts import ContactResolver, DirectoryCache, DirectoryClient
from callmonitor.services.cti import (
    CtiApiClient,
    ExtensionRegistry,
    PresencePoller,
    StreamClient,
    TokenManager,
    create_http_client,
)
from callmonitor.services.phone import PhoneNormalizer

logger = get_logger(__name__)


class CallMonitorService:
    """Owns the monitor's collaborators; one instance per process."""

    def __init__(
        self,
        config: Settings | None = None,
        store: CallStore | None = None,
        broadcaster: EventBroadcaster | None = None,
        clock: Callable[[], datetime] = utc_now,
        cti_transport: httpx.AsyncBaseTransport | None = None,
        directory_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or default_settings
        self.broadcaster = broadcaster or EventBroadcaster()
        self.extensions = ExtensionRegistry()
        self.normalizer = PhoneNormalizer(
            mobile_prefixes=self.config.PHONE_MOBILE_PREFIXES,
            special_prefixes=self.config.PHONE_SPECIAL_PREFIXES,
        )

        directory_client = None
        if self.config.directory_configured():
            directory_client = DirectoryClient(
                base_url=self.config.PF_API_BASE_URL,
                device_id=self.config.PF_API_DEVICE_ID,
                token=self.config.PF_API_TOKEN,
                page_size=self.config.DIRECTORY_PAGE_SIZE,
                transport=directory_transport,
            )
        self.directory = DirectoryCache(
            client=directory_client,
            normalizer=self.normalizer,
            phone_types=self.config.DIRECTORY_PHONE_TYPES,
            concurrency=self.config.DIRECTORY_CONCURRENCY,
        )
        self.resolver = ContactResolver(self.directory, self.normalizer)

        self.db_pool: DatabasePoolManager | None = None
        if store is None:
            if self.config.DATABASE_URL:
                self.db_pool = DatabasePoolManager(self.config.DATABASE_URL)
                store = PostgresCallStore(self.db_pool)
            else:
                store = InMemoryCallStore()
        self.store = store

        self.aggregator = CallAggregator(
            store=self.store,
            sink=self.broadcaster,
            extensions=self.extensions,
            clock=clock,
            stale_after=timedelta(seconds=self.config.STALE_CALL_THRESHOLD_SECONDS),
        )

        self._http: httpx.AsyncClient | None = None
        self.tokens: TokenManager | None = None
        self.cti: CtiApiClient | None = None
        self.stream: StreamClient | None = None
        self.poller: PresencePoller | None = None
        if self.config.cti_configured():
            self._http = create_http_client(self.config.CTI_REQUEST_TIMEOUT, cti_transport)
            self.tokens = TokenManager(
                self._http,
                self.config.CTI_API_BASE_URL,
                self.config.CTI_API_USERNAME,
                self.config.CTI_API_PASSWORD,
                refresh_interval=self.config.CTI_TOKEN_REFRESH_SECONDS,
            )
            self.cti = CtiApiClient(self._http, self.tokens, self.config.CTI_API_BASE_URL)
            self.stream = StreamClient(
                self.cti,
                on_event=self.aggregator.process_event,
                sink=self.broadcaster,
                reconnect_delay=self.config.STREAM_RECONNECT_DELAY_SECONDS,
            )
            self.poller = PresencePoller(
                self.cti,
                self.extensions,
                sink=self.broadcaster,
                last_event_time=lambda: self.aggregator.last_event_time,
                clock=clock,
            )

        self._jobs: list[asyncio.Task] = []
        self.started = False

    @property
    def cti_enabled(self) -> bool:
        return self.cti is not None

    async def start(self) -> None:
        """
        Bring the monitor up.

        Stale legs from a previous run are closed out before the stream starts
        delivering live events. CTI failures are logged and leave the HTTP
        surface usable; database failures abort startup.
        """
        if self.started:
            return

        if self.db_pool is not None:
            await self.db_pool.initialize()
            await self.store.ensure_schema()
            self.store.start()

        await self.aggregator.recover_stale_calls()

        self._jobs.append(
            asyncio.create_task(
                start_directory_refresh_scheduler(
                    self.directory, self.config.DIRECTORY_REFRESH_MINUTES * 60
                ),
                name="directory-refresh",
            )
        )
        self._jobs.append(
            asyncio.create_task(
                start_stale_call_reaper_scheduler(
                    self.aggregator, self.config.STALE_REAPER_INTERVAL_SECONDS
                ),
                name="stale-call-reaper",
            )
        )

        if self.cti_enabled:
            await self._start_cti()
        else:
            logger.warning("CTI credentials not configured, call stream disabled")

        self.started = True
        logger.info(
            "Call monitor started",
            cti_enabled=self.cti_enabled,
            directory_configured=self.directory.is_configured,
            persistent_store=self.db_pool is not None,
        )

    async def _start_cti(self) -> None:
        try:
            await self.tokens.login()
        except Exception as e:
            logger.error("CTI login failed, call stream disabled", error=str(e))
            return

        self.tokens.start_auto_refresh()

        try:
            count = await self.poller.load_extensions()
            logger.info("Extensions loaded", extension_count=count)
        except Exception as e:
            logger.error("Failed to load extensions", error=str(e))

        self.stream.start()
        self.poller.start()

    async def stop(self) -> None:
        """Stop background work and release resources in reverse order."""
        shutdown_errors = []

        if self.stream is not None:
            await self.stream.stop()
        if self.poller is not None:
            await self.poller.stop()
        if self.tokens is not None:
            await self.tokens.stop_auto_refresh()

        for task in self._jobs:
            task.cancel()
        for task in self._jobs:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                shutdown_errors.append(f"{task.get_name()}: {e}")
        self._jobs.clear()

        if isinstance(self.store, PostgresCallStore):
            try:
                await self.store.close()
            except Exception as e:
                shutdown_errors.append(f"Call store: {e}")
        if self.db_pool is not None:
            await self.db_pool.close()

        if self._http is not None:
            await self._http.aclose()
        if self.directory.client is not None:
            await self.directory.client.close()

        self.started = False
        if shutdown_errors:
            logger.warning("Some services had shutdown errors", errors=shutdown_errors)
        else:
            logger.info("Call monitor stopped")

    def status(self) -> dict[str, Any]:
        snapshot = self.directory.snapshot
        return {
            "cti_enabled": self.cti_enabled,
            "stream_connected": bool(self.stream and self.stream.connected),
            "active_calls": self.aggregator.active_count,
            "extensions": len(self.extensions),
            "directory_ready": self.directory.is_ready,
            "directory_entries": len(snapshot) if snapshot else 0,
            "last_event_time": (
                self.aggregator.last_event_time.isoformat()
                if self.aggregator.last_event_time
                else None
            ),
        }
