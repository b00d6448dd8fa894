"""Shared test fixtures for the linegate test suite.

Provides an in-memory Connection that records outbound messages, and
factories for the gateway components built on top of it.
"""

from __future__ import annotations

from typing import Callable
from unittest.mock import MagicMock

import pytest

from linegate.domain.models import ConnectionState
from linegate.gateway.connection import Connection, TransmissionError
from linegate.gateway.controller import GatewayController
from linegate.gateway.framer import CommandFramer
from linegate.gateway.registry import ConnectionRegistry
from linegate.interpreter.base import CommandInterpreter


class RecordingConnection(Connection):
    """Connection that keeps every message it is asked to send."""

    def __init__(self, connection_id: int, remote_address: str | None = "127.0.0.1:50000") -> None:
        super().__init__(connection_id, remote_address)
        self.sent: list[str] = []
        self.closed_with: tuple[int, str] | None = None
        self.fail_sends = False

    def send_text(self, message: str) -> None:
        if self.fail_sends:
            raise TransmissionError("boom", connection_id=self.id)
        self.sent.append(message)

    def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed_with = (code, reason)


# ---------------------------------------------------------------------------
# Connection Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_connection() -> Callable[..., RecordingConnection]:
    """Factory for recording connections, optionally pre-set to a state."""

    def _make(
        connection_id: int = 1,
        state: ConnectionState = ConnectionState.CONNECTING,
    ) -> RecordingConnection:
        connection = RecordingConnection(connection_id)
        connection.state = state
        return connection

    return _make


@pytest.fixture
def open_connection(make_connection: Callable[..., RecordingConnection]) -> RecordingConnection:
    """A connection that has already been admitted."""
    return make_connection(1, ConnectionState.OPEN)


# ---------------------------------------------------------------------------
# Gateway Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_interpreter() -> MagicMock:
    """A mock CommandInterpreter that writes nothing by default."""
    mock = MagicMock(spec=CommandInterpreter)
    mock.name = "MockInterpreter"
    return mock


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry(max_connections=3)


@pytest.fixture
def controller(mock_interpreter: MagicMock, registry: ConnectionRegistry) -> GatewayController:
    """A controller with a 3-client registry and default framing."""
    return GatewayController(
        interpreter=mock_interpreter,
        registry=registry,
        framer=CommandFramer(max_length=128),
        buffer_capacity=256,
        version_tag="test 1.0",
    )
