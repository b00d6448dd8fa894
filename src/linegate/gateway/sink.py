"""Buffered per-dispatch writer that routes interpreter output to one client.

The interpreter writes bytes into a ResponseSink. The sink accumulates
them and emits one outbound message per complete line, or whenever the
buffer gets close to its capacity, so no message exceeds the capacity and
nothing is silently truncated.
"""

from __future__ import annotations

import logging
from types import TracebackType

from linegate.gateway.connection import Connection, TransmissionError

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_CAPACITY = 256

LINE_TERMINATOR = 0x0A  # "\n"


class ResponseSink:
    """Accumulates interpreter output and flushes it to one connection.

    A sink is bound to exactly one Connection for a single command
    dispatch. It is created right before the interpreter runs, flushed
    when the dispatch ends, and then discarded.

    Usage::

        with ResponseSink(connection) as sink:
            interpreter.interpret("<status>", sink)
    """

    def __init__(
        self,
        connection: Connection,
        capacity: int = DEFAULT_BUFFER_CAPACITY,
    ) -> None:
        if capacity < 4:
            raise ValueError(f"Sink capacity must be at least 4 bytes, got {capacity}")
        self._connection = connection
        self._capacity = capacity
        self._buffer = bytearray()
        self._messages_sent = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def pending(self) -> int:
        """Number of bytes currently buffered."""
        return len(self._buffer)

    @property
    def messages_sent(self) -> int:
        return self._messages_sent

    @property
    def connection(self) -> Connection:
        return self._connection

    def write(self, data: bytes | bytearray | str) -> int:
        """Append output, flushing on every newline and near capacity.

        A batch write behaves exactly like writing each byte on its own.

        Args:
            data: Raw bytes, or text that is encoded as UTF-8.

        Returns:
            The number of bytes accepted, which is always all of them.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        for byte in data:
            self._put(byte)
        return len(data)

    def writeline(self, text: str = "") -> int:
        """Write ``text`` followed by a line terminator."""
        return self.write(text + "\n")

    def _put(self, byte: int) -> None:
        # Flushing at capacity - 2 leaves room for a terminator.
        self._buffer.append(byte)
        if byte == LINE_TERMINATOR or len(self._buffer) >= self._capacity - 2:
            self._flush(final=False)

    def flush(self) -> None:
        """Send whatever is buffered. Flushing an empty buffer does nothing."""
        self._flush(final=True)

    def _flush(self, final: bool) -> None:
        if not self._buffer:
            return
        # An unfinished UTF-8 character stays buffered for the next message.
        end = len(self._buffer) if final else len(self._buffer) - _incomplete_tail(self._buffer)
        if end == 0:
            return
        text = bytes(self._buffer[:end]).decode("utf-8", errors="replace")
        del self._buffer[:end]
        if text.endswith("\n"):
            text = text[:-1]
            if text.endswith("\r"):
                text = text[:-1]
        if not text:
            return
        if not self._connection.is_open:
            logger.debug(
                "Dropping %d chars for client #%d (state=%s)",
                len(text), self._connection.id, self._connection.state.value,
            )
            return
        try:
            self._connection.send_text(text)
        except TransmissionError as e:
            logger.debug("Send to client #%d failed: %s", self._connection.id, e)
            return
        self._messages_sent += 1

    def __enter__(self) -> ResponseSink:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.flush()


def _incomplete_tail(buffer: bytearray) -> int:
    """Length of a truncated UTF-8 sequence at the end of ``buffer``, or 0."""
    for back in range(1, min(4, len(buffer)) + 1):
        byte = buffer[-back]
        if byte & 0xC0 == 0x80:
            continue
        if byte >= 0xF0:
            needed = 4
        elif byte >= 0xE0:
            needed = 3
        elif byte >= 0xC0:
            needed = 2
        else:
            return 0
        return back if back < needed else 0
    return 0
