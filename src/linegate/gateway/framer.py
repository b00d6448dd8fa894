"""Normalization of raw client payloads into interpreter command frames.

The interpreter expects every command wrapped in ``<`` ... ``>``. Clients
may send either a fully framed command or bare command text; bare text is
wrapped here so clients do not need to know the framing convention.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

DEFAULT_MAX_COMMAND_LENGTH = 128

COMMAND_START = "<"
COMMAND_END = ">"

# Only these are trimmed; tabs are part of the command.
_TRIM_CHARS = " \r\n"


class MalformedCommandError(Exception):
    """Raised when a payload cannot be turned into a command."""

    def __init__(self, message: str, length: int = 0) -> None:
        super().__init__(message)
        self.length = length


class CommandFramer:
    """Turns raw inbound payloads into canonical command strings."""

    def __init__(self, max_length: int = DEFAULT_MAX_COMMAND_LENGTH) -> None:
        if max_length <= 0:
            raise ValueError(f"max_length must be positive, got {max_length}")
        self._max_length = max_length

    @property
    def max_length(self) -> int:
        return self._max_length

    def normalize(self, payload: bytes | bytearray | str) -> str:
        """Validate, trim and frame one payload.

        The length limit applies to the raw payload in bytes, before
        trimming. A trimmed command that already starts with ``<`` is
        passed through untouched, closed or not.

        Args:
            payload: A text frame or binary frame from the client.

        Returns:
            The command string to hand to the interpreter.

        Raises:
            MalformedCommandError: If the payload is empty, too long, or
                contains only whitespace.
        """
        raw = payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)
        if not raw:
            raise MalformedCommandError("Empty payload")
        if len(raw) > self._max_length:
            raise MalformedCommandError(
                f"Payload of {len(raw)} bytes exceeds {self._max_length}",
                length=len(raw),
            )

        command = raw.decode("utf-8", errors="replace").strip(_TRIM_CHARS)
        if not command:
            raise MalformedCommandError("Payload is only whitespace", length=len(raw))

        if not command.startswith(COMMAND_START):
            command = f"{COMMAND_START}{command}{COMMAND_END}"
        return command
