"""
Pytest configuration and fixtures for relay tests.
"""

import asyncio
import itertools

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketState

from backend import RoomRegistry, room_registry
from connection import Connection
from relay import RelayEngine


class FakeWebSocket:
    """Stands in for a Starlette WebSocket; records what the server sends."""

    def __init__(self, fail_sends: bool = False):
        self.sent = []
        self.close_code = None
        self.close_reason = None
        self.fail_sends = fail_sends
        # Seconds the close handshake takes; a dead peer never answers it quickly
        self.close_delay = 0.0
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.client = None

    async def send_json(self, data):
        if self.fail_sends:
            raise RuntimeError("socket is gone")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason=None):
        if self.close_delay:
            await asyncio.sleep(self.close_delay)
        self.close_code = code
        self.close_reason = reason
        self.application_state = WebSocketState.DISCONNECTED

    def drop_transport(self):
        """Simulate the server tearing the socket down after missed pongs."""
        self.client_state = WebSocketState.DISCONNECTED

    def of_type(self, message_type: str):
        return [m for m in self.sent if m.get("type") == message_type]


@pytest.fixture
def clock():
    """Strictly increasing fake clock so activity ordering is deterministic."""
    counter = itertools.count(1)
    return lambda: next(counter)


@pytest.fixture
def registry(clock):
    return RoomRegistry(clock=clock)


@pytest.fixture
def engine(registry):
    return RelayEngine(registry)


@pytest.fixture
def make_connection():
    """Factory for connections backed by FakeWebSocket."""
    counter = itertools.count(1)

    def _make(fail_sends: bool = False) -> Connection:
        return Connection(FakeWebSocket(fail_sends=fail_sends), connection_id=f"conn-{next(counter)}")

    return _make


@pytest.fixture
def client(clock):
    """TestClient against the real app with a clean module-level registry."""
    from app import app

    original_clock = room_registry.clock
    room_registry.reset()
    room_registry.clock = clock
    with TestClient(app) as test_client:
        yield test_client
    room_registry.reset()
    room_registry.clock = original_clock
