"""
Live Resource Module

This module keeps one server resource (dashboard stats, subscription)
fresh for a mounted consumer, using pushes from the shared live channel
when it is up and polling when it is not.

Features:
- Initial load on mount
- Push-driven updates
- Polling fallback
- Stale response discard
- Unmount safety

Data Model:
- Resource definition (fetch, push events, error message)
- Resource state (data, loading, error, live flag, status)
- Sequence numbers per update

Dependencies:
- APScheduler for the poll loop
- ConnectionManager for the live channel
- pydantic for state snapshots
- logging for tracking

Author: Ledger Sync Development Team
"""

import itertools
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

from pydantic import BaseModel

from ledgersync.shared.config import POLL_INTERVAL_SECONDS
from ledgersync.shared.scheduler import cancel_job, ensure_scheduler_running
from .connection_manager import ConnectionHandle, ConnectionManager

logger = logging.getLogger(__name__)


class LiveStatus(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    POLLING = "polling"


def unwrap_push_envelope(payload: Any) -> Any:
    """
    Pushes arrive either as bare data or as a {success, data} envelope.
    A failed or empty envelope is ignored.
    """
    if isinstance(payload, dict) and "success" in payload:
        if payload.get("success") and payload.get("data"):
            return payload["data"]
        return None
    return payload


class ResourceDefinition:
    """
    What a live resource fetches and which pushes update it.

    Attributes:
        name: Short name used in logs and job ids
        fetch: Coroutine returning fresh data for a token
        events: Push event names carrying the resource
        error_message: Fallback error text for failed fetches
        unwrap_push: Maps a push payload to data, None ignores the push
            (defaults to envelope unwrapping)
    """

    def __init__(
        self,
        name: str,
        fetch: Callable[[str], Awaitable[Any]],
        events: Sequence[str],
        error_message: str,
        unwrap_push: Optional[Callable[[Any], Any]] = None
    ):
        self.name = name
        self.fetch = fetch
        self.events = tuple(events)
        self.error_message = error_message
        self.unwrap_push = unwrap_push or unwrap_push_envelope


class ResourceState(BaseModel):
    """Point-in-time view of a live resource."""
    name: str
    data: Any = None
    loading: bool = True
    error: Optional[str] = None
    is_live: bool = False
    connection_status: LiveStatus = LiveStatus.DISCONNECTED


class LiveResource:
    """
    A mounted consumer of one live resource.

    Attributes:
        definition: Resource definition
        token: Auth token, None means nothing is fetched
        manager: Shared live channel
        scheduler: Scheduler running the poll job
        poll_interval: Seconds between polls while not live
    """

    def __init__(
        self,
        definition: ResourceDefinition,
        token: Optional[str],
        manager: ConnectionManager,
        scheduler=None,
        poll_interval: float = POLL_INTERVAL_SECONDS
    ):
        self.definition = definition
        self.token = token
        self.manager = manager
        self.scheduler = scheduler or manager.scheduler
        self.poll_interval = poll_interval

        self.data: Any = None
        self.loading = True
        self.error: Optional[str] = None
        self.is_live = False
        self.connection_status = LiveStatus.DISCONNECTED

        self.mounted = False
        self._handle: Optional[ConnectionHandle] = None
        self._sequence = itertools.count(1)
        self._applied_sequence = 0
        self._poll_job_id = f"poll:{definition.name}:{id(self)}"

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def polling(self) -> bool:
        return self.scheduler.get_job(self._poll_job_id) is not None

    def snapshot(self) -> ResourceState:
        return ResourceState(
            name=self.name,
            data=self.data,
            loading=self.loading,
            error=self.error,
            is_live=self.is_live,
            connection_status=self.connection_status
        )

    # ------------------------------------------------------------------
    # Mount / unmount
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Mount: load once, then follow the live channel or poll.

        Notes:
            - Without a token nothing is fetched and loading ends at once
            - A live channel that cannot be reached leaves polling on
        """
        self.mounted = True
        if not self.token:
            self.loading = False
            return

        await self.load_initial_data()
        if not self.mounted:
            return

        try:
            handle = self.manager.acquire(self.token)
            handle.on("connect", self._on_connect)
            handle.on("disconnect", self._on_disconnect)
            handle.on("connect_error", self._on_connect_error)
            for event in self.definition.events:
                handle.on(event, self._on_push)
        except Exception as e:
            logger.warning(f"Live channel unavailable for {self.name}, polling instead: {str(e)}")
            self._start_polling()
            return

        self._handle = handle
        if handle.connected:
            self._go_live()
        else:
            self._start_polling()

    async def stop(self) -> None:
        """Unmount: stop polling, detach listeners, release the channel."""
        self.mounted = False
        self._stop_polling()
        handle, self._handle = self._handle, None
        if handle is not None:
            await handle.release()
        logger.debug(f"Live resource {self.name} unmounted")

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def load_initial_data(self) -> None:
        await self._fetch_and_apply(show_loading=True)

    async def refresh(self, show_loading: bool = True) -> None:
        """Refetch now. A soft refresh leaves loading untouched."""
        if not self.mounted or not self.token:
            return
        await self._fetch_and_apply(show_loading=show_loading)

    async def poll_tick(self) -> None:
        """One poll. Skipped while the live channel is up."""
        if not self.mounted or self.is_live:
            return
        await self._fetch_and_apply(show_loading=False)

    async def _fetch_and_apply(self, show_loading: bool) -> None:
        sequence = next(self._sequence)
        if show_loading:
            self.loading = True
        try:
            data = await self.definition.fetch(self.token)
        except Exception as e:
            if not self.mounted:
                return
            logger.error(f"Error fetching {self.name}: {str(e)}")
            if sequence >= self._applied_sequence:
                self.error = str(e) or self.definition.error_message
            self.loading = False
            return
        self._apply(sequence, data)

    def _apply(self, sequence: int, data: Any) -> bool:
        if not self.mounted:
            return False
        if sequence < self._applied_sequence:
            logger.debug(f"Discarding stale {self.name} update #{sequence} (have #{self._applied_sequence})")
            return False
        self._applied_sequence = sequence
        self.data = data
        self.error = None
        self.loading = False
        return True

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _start_polling(self) -> None:
        if not self.mounted or self.is_live:
            return
        self.connection_status = LiveStatus.POLLING
        # Repeated connect errors must not push the next poll out
        if self.polling:
            return
        ensure_scheduler_running(self.scheduler)
        self.scheduler.add_job(
            self.poll_tick,
            "interval",
            seconds=self.poll_interval,
            id=self._poll_job_id,
            replace_existing=True
        )
        logger.info(f"Polling {self.name} every {self.poll_interval}s")

    def _stop_polling(self) -> None:
        if cancel_job(self.scheduler, self._poll_job_id):
            logger.debug(f"Stopped polling {self.name}")

    def _go_live(self) -> None:
        self.is_live = True
        self.connection_status = LiveStatus.CONNECTED
        self._stop_polling()
        logger.info(f"{self.name} is live")

    # ------------------------------------------------------------------
    # Live channel events
    # ------------------------------------------------------------------

    async def _on_connect(self, *args) -> None:
        if not self.mounted:
            return
        self._go_live()

    async def _on_disconnect(self, *args) -> None:
        if not self.mounted:
            return
        self.is_live = False
        self.connection_status = LiveStatus.DISCONNECTED
        self._start_polling()

    async def _on_connect_error(self, *args) -> None:
        if not self.mounted:
            return
        self.is_live = False
        self.connection_status = LiveStatus.DISCONNECTED
        self._start_polling()

    async def _on_push(self, payload: Any = None) -> None:
        if not self.mounted:
            return
        sequence = next(self._sequence)
        data = self.definition.unwrap_push(payload)
        if data is None:
            logger.debug(f"Ignoring empty {self.name} push")
            return
        if self._apply(sequence, data):
            logger.info(f"Received {self.name} update via live channel")
