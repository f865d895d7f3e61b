"""
Pytest Configuration File

This module provides fixtures and configuration for all tests.
"""

import asyncio
from typing import Any, Dict, List, Union

import pytest
from socketio.exceptions import ConnectionError as SocketConnectionError

from ledgersync.features.realtime.connection_manager import ConnectionManager
from ledgersync.features.uploadqueue.models import ImportFile
from ledgersync.shared.scheduler import create_scheduler

SOCKET_TEST_URL = "http://socket.test"


class FakeSocketClient:
    """Stands in for socketio.AsyncClient, driven by the test."""

    def __init__(self, fail: Union[bool, Exception] = False):
        self.fail = fail
        self.connected = False
        self.handlers: Dict[str, Any] = {}
        self.connect_calls: List[Dict[str, Any]] = []
        self.disconnect_calls = 0

    def on(self, event, handler=None):
        self.handlers[event] = handler

    async def connect(self, url, auth=None, transports=None, wait_timeout=None):
        self.connect_calls.append({"url": url, "auth": auth, "transports": transports})
        if isinstance(self.fail, Exception):
            raise self.fail
        if self.fail:
            raise SocketConnectionError("Connection refused by the server")
        self.connected = True
        await self.fire("connect")

    async def disconnect(self):
        self.disconnect_calls += 1
        was_connected = self.connected
        self.connected = False
        if was_connected:
            await self.fire("disconnect", "io client disconnect")

    async def fire(self, event, *args):
        handler = self.handlers.get(event)
        if handler is not None:
            await handler(*args)

    async def drop(self, reason="transport close"):
        self.connected = False
        await self.fire("disconnect", reason)


class ClientFactory:
    """Records every client the manager builds."""

    def __init__(self, fail: Union[bool, Exception] = False):
        self.fail = fail
        self.clients: List[FakeSocketClient] = []

    def __call__(self) -> FakeSocketClient:
        client = FakeSocketClient(fail=self.fail)
        self.clients.append(client)
        return client

    @property
    def last(self) -> FakeSocketClient:
        return self.clients[-1]


class ScriptedFetcher:
    """Returns (or raises) scripted responses in order, repeating the last one."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: List[str] = []

    async def __call__(self, token):
        self.calls.append(token)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


async def settle(rounds: int = 50):
    """Let background tasks run to their next real wait."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_file(name="invoices.xlsx", size=2048, last_modified=1700000000000, mime_type=None, content=None):
    return ImportFile(
        name=name,
        size=size,
        mime_type=mime_type if mime_type is not None else "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        last_modified=last_modified,
        content=content if content is not None else b"x" * min(size, 64)
    )


@pytest.fixture
async def scheduler():
    """Fixture for a scheduler bound to the test's event loop"""
    scheduler = create_scheduler()
    yield scheduler
    if scheduler.running:
        scheduler.shutdown(wait=False)


@pytest.fixture
def client_factory():
    return ClientFactory()


@pytest.fixture
async def manager(client_factory, scheduler):
    """Fixture for a connection manager with zero backoff delays"""
    manager = ConnectionManager(
        url=SOCKET_TEST_URL,
        client_factory=client_factory,
        scheduler=scheduler,
        reconnect_delay=0,
        reconnect_delay_max=0,
        jitter=0
    )
    yield manager
    await manager.disconnect()
