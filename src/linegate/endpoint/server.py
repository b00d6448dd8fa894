"""FastAPI server exposing the gateway over WebSockets and HTTP.

Endpoints:

    WS   /ws              <- command text (framed or bare), -> output lines
    GET  /api/info        -> {"version": ..., "clients": 1, "maxClients": 5}
    GET  /health          -> {"status": "ok", "clients": 1}
    POST /api/broadcast   <- {"message": "..."} -> {"status": "ok", "delivered": 3}

If a static directory is configured it is served at ``/`` with
``index.html`` as the default document.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, WebSocket
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field

from linegate import __version__
from linegate.config.settings import GatewayConfig, InterpreterConfig
from linegate.domain.models import GatewayInfo
from linegate.endpoint.websocket import WebSocketConnection
from linegate.gateway.controller import GatewayController
from linegate.gateway.framer import CommandFramer
from linegate.gateway.registry import ConnectionRegistry
from linegate.interpreter.base import CommandInterpreter, load_interpreter

logger = logging.getLogger(__name__)

CLOSE_INTERNAL_ERROR = 1011


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------

class BroadcastRequest(BaseModel):
    message: str = Field(min_length=1, description="Text sent to every open client")


class BroadcastResponse(BaseModel):
    status: str = "ok"
    delivered: int = 0


class HealthResponse(BaseModel):
    status: str = "ok"
    clients: int = 0


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def build_gateway(
    gateway_config: GatewayConfig | None = None,
    interpreter: CommandInterpreter | None = None,
    interpreter_config: InterpreterConfig | None = None,
) -> GatewayController:
    """Assemble a GatewayController from configuration.

    Args:
        gateway_config: Limits and version tag. Defaults apply if None.
        interpreter: Pre-built interpreter; takes precedence over
                     ``interpreter_config``.
        interpreter_config: How to load the interpreter if none is given.
    """
    gateway_config = gateway_config or GatewayConfig()
    if interpreter is None:
        interpreter_config = interpreter_config or InterpreterConfig()
        options: dict[str, object] = {}
        if interpreter_config.kind == "shell":
            options = {
                "shell_executable": interpreter_config.shell_executable,
                "timeout": interpreter_config.shell_timeout,
            }
        interpreter = load_interpreter(interpreter_config.kind, **options)

    return GatewayController(
        interpreter=interpreter,
        registry=ConnectionRegistry(max_connections=gateway_config.max_connections),
        framer=CommandFramer(max_length=gateway_config.max_command_length),
        buffer_capacity=gateway_config.buffer_capacity,
        version_tag=gateway_config.version_tag,
    )


def create_app(
    gateway: GatewayController | None = None,
    gateway_config: GatewayConfig | None = None,
    interpreter: CommandInterpreter | None = None,
    interpreter_config: InterpreterConfig | None = None,
    ws_path: str = "/ws",
    static_dir: str | Path | None = None,
) -> FastAPI:
    """Create the gateway application.

    Args:
        gateway: Optional pre-configured GatewayController (for testing).
        gateway_config: Limits used when building the controller.
        interpreter: Interpreter used when building the controller.
        interpreter_config: Interpreter selection when none is given.
        ws_path: Path of the command channel.
        static_dir: Optional directory of static files served at ``/``.
    """
    if gateway is None:
        gateway = build_gateway(gateway_config, interpreter, interpreter_config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        g: GatewayController = app.state.gateway
        logger.info(
            "Gateway started (interpreter=%s, max clients=%d, path=%s)",
            g.interpreter.name, g.registry.max_connections, ws_path,
        )
        yield
        logger.info("Gateway stopped (%d client(s) still registered)", g.registry.count())

    app = FastAPI(
        title="linegate",
        description="WebSocket gateway for a shared line-oriented command interpreter",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.gateway = gateway

    @app.get("/health")
    async def health_check() -> HealthResponse:
        g: GatewayController = app.state.gateway
        return HealthResponse(status="ok", clients=g.registry.count())

    @app.get("/api/info")
    async def gateway_info() -> GatewayInfo:
        g: GatewayController = app.state.gateway
        return g.info()

    @app.post("/api/broadcast")
    async def broadcast(request: BroadcastRequest) -> BroadcastResponse:
        g: GatewayController = app.state.gateway
        return BroadcastResponse(status="ok", delivered=g.broadcast(request.message))

    @app.websocket(ws_path)
    async def command_channel(websocket: WebSocket) -> None:
        g: GatewayController = app.state.gateway
        await websocket.accept()
        client = websocket.client
        remote = f"{client.host}:{client.port}" if client else None
        connection = WebSocketConnection(websocket, g.registry.allocate_id(), remote)
        connection.start()
        try:
            if g.on_connect(connection):
                await _receive_commands(g, connection, websocket)
        except Exception as e:
            logger.exception("Client #%d handler failed", connection.id)
            g.on_error(connection, e)
            if connection.is_open:
                g.close(connection, CLOSE_INTERNAL_ERROR, "Internal error")
        finally:
            g.on_disconnect(connection)
            await connection.aclose()

    if static_dir is not None:
        if not (Path(static_dir) / "index.html").is_file():
            logger.warning("No index.html in static directory %s", static_dir)
        app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="static")

    return app


async def _receive_commands(
    gateway: GatewayController,
    connection: WebSocketConnection,
    websocket: WebSocket,
) -> None:
    """Feed inbound frames to the controller until the client disconnects.

    The next frame is read only after the previous dispatch has finished,
    so commands from one client never overlap.
    """
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return
        text = message.get("text")
        payload = text if text is not None else (message.get("bytes") or b"")
        gateway.on_data(connection, payload)


# ---------------------------------------------------------------------------
# Standalone entry point
# ---------------------------------------------------------------------------

def main(host: str = "0.0.0.0", port: int = 8080) -> None:
    """Run the gateway with the echo interpreter and default limits."""
    app = create_app()
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
