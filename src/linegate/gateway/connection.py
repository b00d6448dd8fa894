"""Abstract connection handle used by the gateway core.

The gateway never talks to a transport library directly. Each transport
session is wrapped in a Connection that carries its identity, lifecycle
state and remote address, and exposes a non-blocking ``send_text``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from linegate.domain.models import ConnectionState

logger = logging.getLogger(__name__)


class TransmissionError(Exception):
    """Raised when a message cannot be handed to the transport."""

    def __init__(self, message: str, connection_id: int | None = None) -> None:
        super().__init__(message)
        self.connection_id = connection_id


class Connection(ABC):
    """One live client session over the transport.

    The lifecycle state is owned by the GatewayController; transports only
    read it. Implementations must make ``send_text`` and ``close`` return
    without waiting on the network.
    """

    def __init__(self, connection_id: int, remote_address: str | None = None) -> None:
        self._id = connection_id
        self._remote_address = remote_address
        self.state = ConnectionState.CONNECTING

    @property
    def id(self) -> int:
        return self._id

    @property
    def remote_address(self) -> str:
        return self._remote_address or "unknown"

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    @abstractmethod
    def send_text(self, message: str) -> None:
        """Queue one text message for delivery to the client.

        Args:
            message: Complete message body, sent as a single frame.

        Raises:
            TransmissionError: If the transport can no longer accept data.
        """
        ...

    @abstractmethod
    def close(self, code: int = 1000, reason: str = "") -> None:
        """Ask the transport to close the session after pending messages."""
        ...

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(id={self._id}, state={self.state.value}, "
            f"remote={self.remote_address})"
        )
