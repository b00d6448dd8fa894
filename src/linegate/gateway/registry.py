"""Registry of live connections with admission control and broadcast."""

from __future__ import annotations

import itertools
import logging
import threading

from linegate.domain.models import RejectReason
from linegate.gateway.connection import Connection, TransmissionError

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONNECTIONS = 5


class AdmissionRejected(Exception):
    """Raised when a connection cannot be admitted."""

    def __init__(self, message: str, reason: RejectReason, connection_id: int | None = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.connection_id = connection_id


class ConnectionRegistry:
    """Tracks live connections and enforces the connection limit.

    This is the only state shared between connections, so every read or
    write of the membership goes through one lock. Broadcast iterates over
    a snapshot taken under the lock and delivers outside it.
    """

    def __init__(self, max_connections: int = DEFAULT_MAX_CONNECTIONS) -> None:
        if max_connections <= 0:
            raise ValueError(f"max_connections must be positive, got {max_connections}")
        self._max_connections = max_connections
        self._connections: dict[int, Connection] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    @property
    def max_connections(self) -> int:
        return self._max_connections

    def allocate_id(self) -> int:
        """Return a fresh connection identity."""
        with self._lock:
            return next(self._ids)

    def admit(self, connection: Connection) -> None:
        """Register a connection if there is room for it.

        A rejected connection is left untouched so the caller can still
        send it a final notice before closing it.

        Raises:
            AdmissionRejected: If the registry is full or the id is taken.
        """
        with self._lock:
            if connection.id in self._connections:
                raise AdmissionRejected(
                    f"Connection #{connection.id} is already registered",
                    reason=RejectReason.DUPLICATE_ID,
                    connection_id=connection.id,
                )
            if len(self._connections) >= self._max_connections:
                raise AdmissionRejected(
                    f"Max connections reached ({self._max_connections})",
                    reason=RejectReason.AT_CAPACITY,
                    connection_id=connection.id,
                )
            self._connections[connection.id] = connection

    def remove(self, connection_id: int) -> Connection | None:
        """Unregister a connection. Unknown ids are ignored."""
        with self._lock:
            return self._connections.pop(connection_id, None)

    def get(self, connection_id: int) -> Connection | None:
        with self._lock:
            return self._connections.get(connection_id)

    def connections(self) -> list[Connection]:
        """Snapshot of the registered connections."""
        with self._lock:
            return list(self._connections.values())

    def count(self) -> int:
        with self._lock:
            return len(self._connections)

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, connection_id: object) -> bool:
        with self._lock:
            return connection_id in self._connections

    def broadcast(self, message: str) -> int:
        """Send ``message`` to every open connection.

        Connections that are not open, or whose send fails, are skipped.

        Returns:
            The number of connections the message was handed to.
        """
        delivered = 0
        for connection in self.connections():
            if not connection.is_open:
                continue
            try:
                connection.send_text(message)
            except TransmissionError as e:
                logger.debug("Broadcast to client #%d failed: %s", connection.id, e)
                continue
            delivered += 1
        return delivered
