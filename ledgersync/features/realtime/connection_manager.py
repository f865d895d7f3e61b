"""
Connection Manager Module

This module owns the single live channel (Socket.IO) shared by every
live resource, one physical connection per auth token.

Features:
- Reference-counted handles
- Lazy background connect
- Token re-scoping
- Exponential backoff with jitter
- Periodic live upgrade after retries run out
- Event fan-out to handle listeners

Data Model:
- Transport client
- Connection status (disconnected, connecting, connected)
- Auth token
- Listener registry per event

Dependencies:
- python-socketio for the live channel
- APScheduler for the live upgrade job
- asyncio for background tasks
- logging for tracking

Author: Ledger Sync Development Team
"""

import asyncio
import inspect
import itertools
import logging
import random
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError

from ledgersync.shared.config import (
    CONNECT_TIMEOUT_SECONDS,
    LIVE_RETRY_INTERVAL_SECONDS,
    RECONNECT_ATTEMPTS,
    RECONNECT_DELAY_MAX_SECONDS,
    RECONNECT_DELAY_SECONDS,
    RECONNECT_JITTER,
    SOCKET_TRANSPORTS,
    get_socket_url
)
from ledgersync.shared.scheduler import cancel_job, create_scheduler, ensure_scheduler_running

logger = logging.getLogger(__name__)

LIFECYCLE_EVENTS = ("connect", "disconnect", "connect_error")

Listener = Callable[..., Any]


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def backoff_delay(
    attempt: int,
    base: float = RECONNECT_DELAY_SECONDS,
    cap: float = RECONNECT_DELAY_MAX_SECONDS,
    jitter: float = RECONNECT_JITTER,
    rand: Callable[[], float] = random.random
) -> float:
    """
    Delay before reconnect attempt number `attempt` (0-based).

    Exponential growth capped at `cap`, then randomized by +/- `jitter`
    of itself. Never exceeds `cap`.
    """
    delay = min(cap, base * (2 ** attempt))
    delay *= 1 + jitter * (2 * rand() - 1)
    return max(0.0, min(cap, delay))


def _default_client_factory() -> socketio.AsyncClient:
    return socketio.AsyncClient(reconnection=False, logger=False, engineio_logger=False)


class ConnectionHandle:
    """
    One consumer's claim on the shared live channel.

    Listeners registered through a handle are detached when it is
    released; the transport closes when the last handle goes.
    """

    def __init__(self, manager: "ConnectionManager", handle_id: int):
        self._manager = manager
        self.id = handle_id
        self.released = False

    @property
    def connected(self) -> bool:
        return not self.released and self._manager.connected

    @property
    def status(self) -> ConnectionStatus:
        return self._manager.status

    def on(self, event: str, callback: Listener) -> None:
        if self.released:
            raise RuntimeError("Connection handle already released")
        self._manager._add_listener(self.id, event, callback)

    def off(self, event: str, callback: Listener) -> None:
        self._manager._remove_listener(self.id, event, callback)

    async def release(self) -> None:
        if self.released:
            return
        self.released = True
        await self._manager._release(self.id)


class ConnectionManager:
    """
    Shared live channel.

    Attributes:
        url: Socket server URL
        token: Token the current transport is scoped to
        status: Connection status
        scheduler: Scheduler for the periodic live upgrade
    """

    def __init__(
        self,
        url: Optional[str] = None,
        client_factory: Optional[Callable[[], Any]] = None,
        scheduler=None,
        reconnect_attempts: int = RECONNECT_ATTEMPTS,
        reconnect_delay: float = RECONNECT_DELAY_SECONDS,
        reconnect_delay_max: float = RECONNECT_DELAY_MAX_SECONDS,
        jitter: float = RECONNECT_JITTER,
        live_retry_interval: float = LIVE_RETRY_INTERVAL_SECONDS,
        connect_timeout: float = CONNECT_TIMEOUT_SECONDS
    ):
        self.url = url if url is not None else get_socket_url()
        self.client_factory = client_factory or _default_client_factory
        self.scheduler = scheduler or create_scheduler()
        self.reconnect_attempts = reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.reconnect_delay_max = reconnect_delay_max
        self.jitter = jitter
        self.live_retry_interval = live_retry_interval
        self.connect_timeout = connect_timeout

        self.token: Optional[str] = None
        self.status = ConnectionStatus.DISCONNECTED
        self._client = None
        self._relayed_events: set = set()
        self._listeners: Dict[str, List[Tuple[int, Listener]]] = {}
        self._handles: Dict[int, ConnectionHandle] = {}
        self._handle_ids = itertools.count(1)
        self._closing = False
        self._attempts = 0
        self._connect_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._live_retry_job_id = f"live-retry:{id(self)}"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._client is not None and self.status == ConnectionStatus.CONNECTED

    @property
    def client(self):
        return self._client

    @property
    def ref_count(self) -> int:
        return len(self._handles)

    @property
    def reconnecting(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    @property
    def live_retry_scheduled(self) -> bool:
        return self.scheduler.get_job(self._live_retry_job_id) is not None

    def acquire(self, token: str) -> ConnectionHandle:
        """
        Register a consumer and make sure a transport exists for `token`.

        Returns immediately; the connection is opened in the background.
        """
        handle = ConnectionHandle(self, next(self._handle_ids))
        self._handles[handle.id] = handle
        logger.debug(f"Live channel handle {handle.id} acquired ({self.ref_count} active)")

        if self._client is None or token != self.token:
            self._connect_task = asyncio.ensure_future(self.connect(token))
            self._connect_task.add_done_callback(self._on_connect_task_done)
        return handle

    async def connect(self, token: str):
        """
        Return the transport for `token`, building it if needed.

        Notes:
            - Same token reuses the existing transport
            - A new token tears the old transport down first
            - Failures are logged and retried, never raised
        """
        if self._client is not None and token == self.token:
            return self._client
        if self._client is not None:
            logger.info("Auth token changed, re-scoping live channel")
            await self._teardown()

        self.token = token
        if not self.url:
            logger.warning("Live channel skipped: socket URL is not configured, real-time updates unavailable")
            return None

        client = self.client_factory()
        self._client = client
        self._relayed_events = set()

        async def on_connect():
            if client is self._client:
                await self._on_connect()

        async def on_disconnect(reason=None):
            if client is self._client:
                await self._on_disconnect(reason)

        async def on_connect_error(data=None):
            if client is self._client:
                await self._on_connect_error(data)

        client.on("connect", on_connect)
        client.on("disconnect", on_disconnect)
        client.on("connect_error", on_connect_error)
        for event in list(self._listeners):
            self._relay(event)

        if not await self._attempt():
            self._schedule_reconnect()
        return self._client

    async def disconnect(self) -> None:
        """Tear down the transport and forget it."""
        await self._teardown()
        self.token = None

    async def update_token(self, token: str) -> None:
        """Re-scope the live channel to a new token."""
        if token == self.token and self._client is not None:
            return
        await self._teardown()
        self.token = token
        if self._handles:
            await self.connect(token)

    # ------------------------------------------------------------------
    # Listener registry
    # ------------------------------------------------------------------

    def _add_listener(self, handle_id: int, event: str, callback: Listener) -> None:
        self._listeners.setdefault(event, []).append((handle_id, callback))
        self._relay(event)

    def _remove_listener(self, handle_id: int, event: str, callback: Listener) -> None:
        entries = self._listeners.get(event, [])
        self._listeners[event] = [
            (owner, cb) for owner, cb in entries if not (owner == handle_id and cb == callback)
        ]

    def _relay(self, event: str) -> None:
        client = self._client
        if client is None or event in LIFECYCLE_EVENTS or event in self._relayed_events:
            return

        async def relay(*args):
            if client is self._client:
                await self._dispatch(event, *args)

        client.on(event, relay)
        self._relayed_events.add(event)

    async def _dispatch(self, event: str, *args) -> None:
        for handle_id, callback in list(self._listeners.get(event, [])):
            if handle_id not in self._handles:
                continue
            try:
                result = callback(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Error in live channel listener for {event}: {str(e)}")

    async def _release(self, handle_id: int) -> None:
        self._handles.pop(handle_id, None)
        for event in list(self._listeners):
            self._listeners[event] = [(owner, cb) for owner, cb in self._listeners[event] if owner != handle_id]
        logger.debug(f"Live channel handle {handle_id} released ({self.ref_count} active)")
        if not self._handles:
            logger.info("Last live channel consumer left, disconnecting")
            await self.disconnect()

    # ------------------------------------------------------------------
    # Transport lifecycle
    # ------------------------------------------------------------------

    async def _attempt(self) -> bool:
        client = self._client
        if client is None:
            return False
        self.status = ConnectionStatus.CONNECTING
        try:
            await client.connect(
                self.url,
                auth={"token": self.token},
                transports=list(SOCKET_TRANSPORTS),
                wait_timeout=self.connect_timeout
            )
        except Exception as e:
            if client is not self._client:
                return False
            if isinstance(e, (SocketConnectionError, asyncio.TimeoutError, OSError)):
                logger.warning(f"Live channel connection failed: {str(e)}")
            else:
                logger.error(f"Error in live channel connect: {str(e)}")
            self.status = ConnectionStatus.DISCONNECTED
            await self._dispatch("connect_error", e)
            return False
        if client is not self._client:
            await client.disconnect()
            return False
        return self.connected

    def _on_connect_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Error in background live channel connect: {str(error)}")

    def _schedule_reconnect(self) -> None:
        if self._closing or not self._handles or self._client is None or self.reconnecting:
            return
        self._reconnect_task = asyncio.ensure_future(self._reconnect_loop())

    async def _reconnect_loop(self) -> None:
        while self._attempts < self.reconnect_attempts:
            delay = backoff_delay(self._attempts, self.reconnect_delay, self.reconnect_delay_max, self.jitter)
            self._attempts += 1
            logger.info(f"Reconnecting live channel in {delay:.1f}s (attempt {self._attempts}/{self.reconnect_attempts})")
            await asyncio.sleep(delay)
            if self._closing or self._client is None or self.connected:
                return
            if await self._attempt():
                return
        logger.warning(
            f"Live channel retries exhausted after {self._attempts} attempts, "
            f"staying on polling and retrying every {self.live_retry_interval}s"
        )
        self._schedule_live_retry()

    def _schedule_live_retry(self) -> None:
        if self._closing or not self._handles:
            return
        ensure_scheduler_running(self.scheduler)
        self.scheduler.add_job(
            self.live_retry,
            "interval",
            seconds=self.live_retry_interval,
            id=self._live_retry_job_id,
            replace_existing=True
        )

    async def live_retry(self) -> None:
        """One periodic live upgrade attempt."""
        if self.connected or not self._handles or self._client is None:
            cancel_job(self.scheduler, self._live_retry_job_id)
            return
        if self.status == ConnectionStatus.CONNECTING or self.reconnecting:
            return
        logger.info("Attempting live channel upgrade")
        await self._attempt()

    async def _teardown(self) -> None:
        self._closing = True
        try:
            if self._reconnect_task is not None and not self._reconnect_task.done():
                self._reconnect_task.cancel()
            self._reconnect_task = None
            cancel_job(self.scheduler, self._live_retry_job_id)
            client, self._client = self._client, None
            if client is not None and getattr(client, "connected", False):
                try:
                    await client.disconnect()
                except Exception as e:
                    logger.error(f"Error in live channel disconnect: {str(e)}")
                if self.status != ConnectionStatus.DISCONNECTED:
                    self.status = ConnectionStatus.DISCONNECTED
                    await self._dispatch("disconnect", "client disconnect")
            self.status = ConnectionStatus.DISCONNECTED
            self._attempts = 0
            self._relayed_events = set()
        finally:
            self._closing = False

    # ------------------------------------------------------------------
    # Transport events
    # ------------------------------------------------------------------

    async def _on_connect(self) -> None:
        self.status = ConnectionStatus.CONNECTED
        self._attempts = 0
        cancel_job(self.scheduler, self._live_retry_job_id)
        logger.info("Live channel connected")
        await self._dispatch("connect")

    async def _on_disconnect(self, reason=None) -> None:
        if self._closing:
            return
        self.status = ConnectionStatus.DISCONNECTED
        logger.info(f"Live channel disconnected: {reason}")
        await self._dispatch("disconnect", reason)
        self._schedule_reconnect()

    async def _on_connect_error(self, data=None) -> None:
        logger.warning(f"Live channel connection error: {data}")


_default_manager: Optional[ConnectionManager] = None


def get_connection_manager() -> ConnectionManager:
    """Process-wide live channel manager."""
    global _default_manager
    if _default_manager is None:
        _default_manager = ConnectionManager()
    return _default_manager
