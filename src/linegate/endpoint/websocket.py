"""Starlette WebSocket adapter for gateway connections.

The gateway core and the interpreter run synchronously, while Starlette
sends are coroutines. Each WebSocketConnection therefore owns an outbound
queue drained by a writer task: ``send_text`` only enqueues, so it never
blocks the interpreter, and messages leave in the order they were queued.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from linegate.gateway.connection import Connection, TransmissionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CloseFrame:
    code: int
    reason: str


class WebSocketConnection(Connection):
    """Connection backed by an accepted Starlette WebSocket."""

    def __init__(
        self,
        websocket: WebSocket,
        connection_id: int,
        remote_address: str | None = None,
    ) -> None:
        super().__init__(connection_id, remote_address)
        self._websocket = websocket
        self._outbox: asyncio.Queue[str | _CloseFrame] = asyncio.Queue()
        self._close_requested = False
        self._writer_task: asyncio.Task[None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def transport_connected(self) -> bool:
        return self._websocket.client_state == WebSocketState.CONNECTED

    def start(self) -> None:
        """Start the writer task. Must be called from the event loop."""
        if self._writer_task is None:
            self._loop = asyncio.get_running_loop()
            self._writer_task = self._loop.create_task(self._write_loop())

    def send_text(self, message: str) -> None:
        if self._close_requested or self.is_closed:
            raise TransmissionError("Connection is closing", connection_id=self.id)
        self._enqueue(message)

    def close(self, code: int = 1000, reason: str = "") -> None:
        if self._close_requested:
            return
        self._close_requested = True
        self._enqueue(_CloseFrame(code, reason))

    def _enqueue(self, item: str | _CloseFrame) -> None:
        # Calls from outside the writer loop go through call_soon_threadsafe.
        loop = self._loop
        if loop is None or _current_loop() is loop:
            self._outbox.put_nowait(item)
        else:
            loop.call_soon_threadsafe(self._outbox.put_nowait, item)

    async def aclose(self, code: int = 1000, reason: str = "") -> None:
        """Close after pending messages and wait for the writer to finish."""
        self.close(code, reason)
        if self._writer_task is None:
            return
        try:
            await self._writer_task
        finally:
            self._writer_task = None

    async def _write_loop(self) -> None:
        while True:
            item = await self._outbox.get()
            if isinstance(item, _CloseFrame):
                await self._close_socket(item)
                return
            if not self.transport_connected:
                logger.debug("Client #%d gone, dropping message", self.id)
                continue
            try:
                await self._websocket.send_text(item)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                logger.debug("Send to client #%d failed: %s", self.id, e)

    async def _close_socket(self, frame: _CloseFrame) -> None:
        if not self.transport_connected:
            return
        if self._websocket.application_state != WebSocketState.CONNECTED:
            return
        with contextlib.suppress(RuntimeError, OSError):
            await self._websocket.close(code=frame.code, reason=frame.reason)
        logger.debug("Closed client #%d (code=%d)", self.id, frame.code)


def _current_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
