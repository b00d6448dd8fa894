"""Event-driven orchestrator tying connections to the shared interpreter.

The transport reports four kinds of events per connection (connect, data,
disconnect, error). The GatewayController makes the admission decision,
runs the request/response cycle for each command, and keeps every
connection's lifecycle state consistent with an explicit transition table.
"""

from __future__ import annotations

import logging

from linegate.domain.models import (
    CapacityNotice,
    ConnectionEvent,
    ConnectionState,
    GatewayInfo,
    RejectReason,
    WelcomeNotice,
    to_wire,
)
from linegate.gateway.connection import Connection, TransmissionError
from linegate.gateway.framer import CommandFramer, MalformedCommandError
from linegate.gateway.registry import AdmissionRejected, ConnectionRegistry
from linegate.gateway.sink import DEFAULT_BUFFER_CAPACITY, ResponseSink
from linegate.interpreter.base import CommandInterpreter

logger = logging.getLogger(__name__)

DEFAULT_VERSION_TAG = "linegate WebSocket 1.0"

# WebSocket close codes
CLOSE_NORMAL = 1000
CLOSE_TRY_AGAIN_LATER = 1013

TRANSITIONS: dict[tuple[ConnectionState, ConnectionEvent], ConnectionState] = {
    (ConnectionState.CONNECTING, ConnectionEvent.ADMIT): ConnectionState.OPEN,
    (ConnectionState.CONNECTING, ConnectionEvent.REJECT): ConnectionState.CLOSING,
    (ConnectionState.CONNECTING, ConnectionEvent.DISCONNECT): ConnectionState.CLOSED,
    (ConnectionState.OPEN, ConnectionEvent.CLOSE): ConnectionState.CLOSING,
    (ConnectionState.OPEN, ConnectionEvent.DISCONNECT): ConnectionState.CLOSED,
    (ConnectionState.CLOSING, ConnectionEvent.DISCONNECT): ConnectionState.CLOSED,
}


class InvalidTransition(Exception):
    """Raised when an event is not allowed in a connection's current state."""

    def __init__(self, state: ConnectionState, event: ConnectionEvent) -> None:
        super().__init__(f"Event {event.value!r} not allowed in state {state.value!r}")
        self.state = state
        self.event = event


def next_state(state: ConnectionState, event: ConnectionEvent) -> ConnectionState:
    """Look up the state reached by applying ``event`` in ``state``.

    Raises:
        InvalidTransition: If the table has no entry for the pair.
    """
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransition(state, event) from None


class GatewayController:
    """Owns admission and the per-command dispatch cycle.

    The controller is an explicit context object: create one per server
    and hand it to every connection handler.

    Args:
        interpreter: The shared command interpreter.
        registry: Live connection registry. A default one is created if
                  omitted.
        framer: Payload normalizer. A default one is created if omitted.
        buffer_capacity: Capacity in bytes of each per-dispatch sink.
        version_tag: Version string reported by ``info()``.
    """

    def __init__(
        self,
        interpreter: CommandInterpreter,
        registry: ConnectionRegistry | None = None,
        framer: CommandFramer | None = None,
        buffer_capacity: int = DEFAULT_BUFFER_CAPACITY,
        version_tag: str = DEFAULT_VERSION_TAG,
    ) -> None:
        self._interpreter = interpreter
        self._registry = registry or ConnectionRegistry()
        self._framer = framer or CommandFramer()
        self._buffer_capacity = buffer_capacity
        self._version_tag = version_tag

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def framer(self) -> CommandFramer:
        return self._framer

    @property
    def interpreter(self) -> CommandInterpreter:
        return self._interpreter

    @property
    def buffer_capacity(self) -> int:
        return self._buffer_capacity

    def _transition(self, connection: Connection, event: ConnectionEvent) -> None:
        old = connection.state
        connection.state = next_state(old, event)
        logger.debug(
            "Client #%d: %s --%s--> %s",
            connection.id, old.value, event.value, connection.state.value,
        )

    # -------------------------------------------------------------------
    # Transport events
    # -------------------------------------------------------------------

    def on_connect(self, connection: Connection) -> bool:
        """Admit a newly connected client or turn it away.

        Returns:
            True if the connection is now open, False if it was rejected
            and is being closed.
        """
        try:
            self._registry.admit(connection)
        except AdmissionRejected as e:
            self._transition(connection, ConnectionEvent.REJECT)
            if e.reason == RejectReason.AT_CAPACITY:
                logger.warning("Client #%d rejected (max reached)", connection.id)
            else:
                logger.warning("Client #%d rejected: %s", connection.id, e)
            self._send_quietly(connection, to_wire(CapacityNotice(error=_reject_message(e))))
            connection.close(CLOSE_TRY_AGAIN_LATER, _reject_message(e))
            return False

        self._transition(connection, ConnectionEvent.ADMIT)
        logger.info(
            "Client #%d connected from %s (%d/%d)",
            connection.id, connection.remote_address,
            self._registry.count(), self._registry.max_connections,
        )
        self._send_quietly(connection, to_wire(WelcomeNotice(client_id=connection.id)))
        return True

    def on_data(self, connection: Connection, payload: bytes | str) -> str | None:
        """Run one inbound payload through the interpreter.

        Malformed payloads are dropped without a reply. Exceptions raised
        by the interpreter propagate after the sink has been flushed.

        Returns:
            The normalized command, or None if nothing was dispatched.
        """
        if not connection.is_open:
            logger.debug(
                "Ignoring data for client #%d in state %s",
                connection.id, connection.state.value,
            )
            return None
        try:
            command = self._framer.normalize(payload)
        except MalformedCommandError as e:
            logger.debug("Dropping payload from client #%d: %s", connection.id, e)
            return None

        logger.info("CMD from #%d: %s", connection.id, command)
        with ResponseSink(connection, capacity=self._buffer_capacity) as sink:
            self._interpreter.interpret(command, sink)
        return command

    def on_disconnect(self, connection: Connection) -> None:
        """Tear down a connection. Repeated calls are no-ops."""
        if connection.is_closed:
            return
        removed = self._registry.remove(connection.id)
        self._transition(connection, ConnectionEvent.DISCONNECT)
        if removed is not None:
            logger.info("Client #%d disconnected", connection.id)

    def on_error(self, connection: Connection, error: BaseException | None = None) -> None:
        """Record a transport error. Cleanup is left to the disconnect."""
        if error is None:
            logger.warning("Error on client #%d", connection.id)
        else:
            logger.warning("Error on client #%d: %s", connection.id, error)

    # -------------------------------------------------------------------
    # Server-side operations
    # -------------------------------------------------------------------

    def close(self, connection: Connection, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        """Close an open connection from the server side."""
        self._transition(connection, ConnectionEvent.CLOSE)
        connection.close(code, reason)

    def broadcast(self, message: str) -> int:
        """Send ``message`` to every open connection; returns the count."""
        delivered = self._registry.broadcast(message)
        logger.debug("Broadcast delivered to %d client(s)", delivered)
        return delivered

    def info(self) -> GatewayInfo:
        return GatewayInfo(
            version=self._version_tag,
            clients=self._registry.count(),
            max_clients=self._registry.max_connections,
        )

    @staticmethod
    def _send_quietly(connection: Connection, message: str) -> None:
        try:
            connection.send_text(message)
        except TransmissionError as e:
            logger.debug("Notice to client #%d not sent: %s", connection.id, e)


def _reject_message(error: AdmissionRejected) -> str:
    if error.reason == RejectReason.AT_CAPACITY:
        return CapacityNotice().error
    return str(error)
