"""Core domain models for the linegate system.

These models describe connection lifecycle states, admission outcomes,
and the JSON notices the gateway sends to clients or exposes over HTTP.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ConnectionState(str, enum.Enum):
    """Lifecycle state of a single client connection."""

    CONNECTING = "connecting"  # Transport connected, admission pending
    OPEN = "open"  # Admitted, commands are dispatched
    CLOSING = "closing"  # Close requested, waiting for the transport
    CLOSED = "closed"  # Terminal


class ConnectionEvent(str, enum.Enum):
    """Events that drive connection state transitions."""

    ADMIT = "admit"
    REJECT = "reject"
    CLOSE = "close"
    DISCONNECT = "disconnect"


class RejectReason(str, enum.Enum):
    """Why a connection was refused at admission time."""

    AT_CAPACITY = "at_capacity"
    DUPLICATE_ID = "duplicate_id"


# ---------------------------------------------------------------------------
# Wire notices
# ---------------------------------------------------------------------------


class WelcomeNotice(BaseModel):
    """Sent once to a client right after it has been admitted."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    connected: bool = Field(default=True)
    client_id: int = Field(alias="clientId", description="Identity assigned by the registry")


class CapacityNotice(BaseModel):
    """Sent once to a client refused because the gateway is full."""

    model_config = ConfigDict(frozen=True)

    error: str = Field(default="Max clients reached")


class GatewayInfo(BaseModel):
    """Diagnostic snapshot served by the info endpoint."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: str
    clients: int = Field(ge=0, description="Current live connection count")
    max_clients: int = Field(alias="maxClients", gt=0)


def to_wire(notice: BaseModel) -> str:
    """Serialize a notice the way clients expect it (camelCase aliases)."""
    return notice.model_dump_json(by_alias=True)
