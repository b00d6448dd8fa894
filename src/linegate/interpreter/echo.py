"""Interpreter that writes every command straight back to its sender."""

from __future__ import annotations

import logging

from linegate.gateway.sink import ResponseSink
from linegate.interpreter.base import CommandInterpreter

logger = logging.getLogger(__name__)


class EchoInterpreter(CommandInterpreter):
    """Echoes each framed command as a single output line.

    Useful for trying out a client against the gateway without a real
    command processor behind it.
    """

    def __init__(self, prefix: str = "") -> None:
        self._prefix = prefix

    def interpret(self, command: str, sink: ResponseSink) -> None:
        logger.debug("Echoing %s", command)
        sink.writeline(f"{self._prefix}{command}")
