"""Command-line interface for linegate.

Provides the main entry point for running the gateway server and for
poking at a running gateway from the terminal.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:8080"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="linegate",
        description="WebSocket gateway for a shared line-oriented command interpreter",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/linegate.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the gateway server")
    serve_parser.add_argument("--host", type=str, default=None, help="Override server.host")
    serve_parser.add_argument("--port", type=int, default=None, help="Override server.port")
    serve_parser.add_argument(
        "--interpreter", type=str, default=None,
        help="Override interpreter.kind ('echo', 'shell' or 'module:attribute')",
    )

    info_parser = subparsers.add_parser("info", help="Show status of a running gateway")
    info_parser.add_argument("--url", type=str, default=DEFAULT_URL, help="Gateway base URL")

    send_parser = subparsers.add_parser("send", help="Send one command and print the replies")
    send_parser.add_argument("text", type=str, help="Command text, framed or bare")
    send_parser.add_argument("--url", type=str, default=DEFAULT_URL, help="Gateway base URL")
    send_parser.add_argument("--ws-path", type=str, default="/ws", help="Command channel path")
    send_parser.add_argument(
        "--wait", type=float, default=1.0,
        help="Seconds of silence after which to stop reading replies",
    )

    return parser.parse_args(argv)


def _websocket_url(base_url: str, path: str) -> str:
    """Map an http(s) base URL to the ws(s) URL of the command channel."""
    base = base_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    return base + path


async def _info(url: str) -> int:
    """Fetch /api/info and print it."""
    import httpx

    try:
        async with httpx.AsyncClient(base_url=url, timeout=5.0) as client:
            r = await client.get("/api/info")
            r.raise_for_status()
    except httpx.HTTPError as e:
        print(f"Could not reach gateway at {url}: {e}", file=sys.stderr)
        return 1

    data = r.json()
    print(f"Version:  {data['version']}")
    print(f"Clients:  {data['clients']}/{data['maxClients']}")
    return 0


async def _send(url: str, ws_path: str, text: str, wait: float) -> int:
    """Connect to the command channel, send one command, print replies."""
    import websockets

    ws_url = _websocket_url(url, ws_path)
    try:
        async with websockets.connect(ws_url) as ws:
            notice = json.loads(await ws.recv())
            if not notice.get("connected"):
                print(f"Rejected: {notice.get('error', notice)}", file=sys.stderr)
                return 2
            print(f"Connected as client #{notice['clientId']}")

            await ws.send(text)
            while True:
                try:
                    reply = await asyncio.wait_for(ws.recv(), timeout=wait)
                except asyncio.TimeoutError:
                    break
                print(reply)
    except (OSError, websockets.WebSocketException) as e:
        print(f"Connection to {ws_url} failed: {e}", file=sys.stderr)
        return 1
    return 0


def _serve(settings) -> None:
    """Build the app from settings and run it under uvicorn."""
    import uvicorn

    from linegate.endpoint.server import create_app

    srv = settings.server
    app = create_app(
        gateway_config=settings.gateway,
        interpreter_config=settings.interpreter,
        ws_path=srv.ws_path,
        static_dir=srv.static_dir,
    )
    logger.info("Gateway listening on %s:%d (ws path %s)", srv.host, srv.port, srv.ws_path)
    uvicorn.run(app, host=srv.host, port=srv.port, log_config=None)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the linegate CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from linegate.config.settings import load_settings
    from linegate.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "serve":
        if args.host is not None:
            settings.server.host = args.host
        if args.port is not None:
            settings.server.port = args.port
        if args.interpreter is not None:
            settings.interpreter.kind = args.interpreter
        logger.info("Starting gateway server")
        _serve(settings)

    elif args.command == "info":
        sys.exit(asyncio.run(_info(args.url)))

    elif args.command == "send":
        sys.exit(asyncio.run(_send(args.url, args.ws_path, args.text, args.wait)))


if __name__ == "__main__":
    main()
