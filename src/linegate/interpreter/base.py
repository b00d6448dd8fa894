"""Abstract base class for command interpreters.

The gateway treats the interpreter as a black box: it receives one framed
command and writes zero or more lines of output to the sink it is given.
All interpreter implementations must conform to this interface.
"""

from __future__ import annotations

import importlib
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from linegate.gateway.sink import ResponseSink

logger = logging.getLogger(__name__)


class CommandInterpreter(ABC):
    """Abstract interface for the shared line-oriented interpreter.

    ``interpret`` is called synchronously, once per normalized command,
    and must write its output through ``sink`` rather than returning it.

    Example usage::

        interpreter = EchoInterpreter()
        with ResponseSink(connection) as sink:
            interpreter.interpret("<status>", sink)
    """

    @abstractmethod
    def interpret(self, command: str, sink: ResponseSink) -> None:
        """Process one framed command.

        Args:
            command: Command text including the ``<`` ... ``>`` frame.
            sink: Output channel back to the client that sent the command.
        """
        ...

    @property
    def name(self) -> str:
        return type(self).__name__


class InterpreterError(Exception):
    """Raised when an interpreter cannot be loaded or fails to run."""

    def __init__(self, message: str, interpreter: str = "") -> None:
        super().__init__(message)
        self.interpreter = interpreter


def strip_frame(command: str) -> str:
    """Return the text inside a ``<...>`` frame, tolerating a missing ``>``."""
    body = command[1:] if command.startswith("<") else command
    if body.endswith(">"):
        body = body[:-1]
    return body.strip()


def load_interpreter(spec: str, **options: object) -> CommandInterpreter:
    """Build an interpreter from a short name or an import path.

    Args:
        spec: ``"echo"``, ``"shell"`` or ``"package.module:attribute"``
              where the attribute is a CommandInterpreter subclass or a
              factory returning one.
        **options: Keyword arguments passed to the constructor/factory.

    Raises:
        InterpreterError: If the spec cannot be resolved.
    """
    if spec == "echo":
        from linegate.interpreter.echo import EchoInterpreter
        return EchoInterpreter(**options)  # type: ignore[arg-type]
    if spec == "shell":
        from linegate.interpreter.shell import ShellInterpreter
        return ShellInterpreter(**options)  # type: ignore[arg-type]

    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise InterpreterError(
            f"Unknown interpreter {spec!r}; use 'echo', 'shell' or 'module:attribute'",
            interpreter=spec,
        )
    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise InterpreterError(f"Cannot load interpreter {spec!r}: {e}", interpreter=spec) from e

    interpreter = factory(**options)
    if not isinstance(interpreter, CommandInterpreter):
        raise InterpreterError(
            f"{spec!r} produced {type(interpreter).__name__}, not a CommandInterpreter",
            interpreter=spec,
        )
    logger.info("Loaded interpreter %s from %s", interpreter.name, spec)
    return interpreter
