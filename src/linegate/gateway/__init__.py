"""Gateway core for linegate.

Command framing, per-dispatch response buffering, the live connection
registry with admission control, and the controller that wires them to
the shared interpreter.

Public API:
    GatewayController -- Event-driven orchestrator
    ConnectionRegistry -- Live connections, admission and broadcast
    CommandFramer -- Payload normalization
    ResponseSink -- Buffered output back to one connection
    Connection -- Abstract transport session
"""

from linegate.gateway.connection import Connection, TransmissionError
from linegate.gateway.controller import GatewayController, InvalidTransition
from linegate.gateway.framer import CommandFramer, MalformedCommandError
from linegate.gateway.registry import AdmissionRejected, ConnectionRegistry
from linegate.gateway.sink import ResponseSink

__all__ = [
    "AdmissionRejected",
    "CommandFramer",
    "Connection",
    "ConnectionRegistry",
    "GatewayController",
    "InvalidTransition",
    "MalformedCommandError",
    "ResponseSink",
    "TransmissionError",
]
