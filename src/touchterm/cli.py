"""Command-line interface for touchterm.

Provides the main entry point for running the session endpoint,
connecting to one from this terminal, or checking its health.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="touchterm",
        description="Remote terminal with sticky touch modifiers",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/touchterm.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("serve", help="Start the session endpoint server")

    connect_parser = subparsers.add_parser("connect", help="Open a session in this terminal")
    connect_parser.add_argument(
        "--url", type=str, default=None,
        help="Channel URL (default: client.url from config)",
    )

    status_parser = subparsers.add_parser("status", help="Show the endpoint health")
    status_parser.add_argument(
        "--url", type=str, default=None,
        help="Server base URL (default: derived from client.url)",
    )

    return parser.parse_args(argv)


def _serve(settings) -> None:
    """Run the endpoint with uvicorn."""
    import uvicorn

    from touchterm.endpoint.server import create_app

    srv = settings.server
    app = create_app(
        output_encoding=srv.output_encoding,
        term_name=srv.term_name,
        read_chunk_size=srv.read_chunk_size,
        websocket_path=srv.websocket_path,
        static_dir=srv.static_dir,
    )
    logger.info("Listening on http://%s:%d", srv.host, srv.port)
    uvicorn.run(app, host=srv.host, port=srv.port)


async def _connect(settings, url: str | None) -> None:
    """Run the console client against the endpoint."""
    from touchterm.client.console import ConsoleClient
    from touchterm.client.viewport import FontMetrics
    from touchterm.client.websocket_backend import WebSocketTransport
    from touchterm.keyboard.composer import KeyComposer
    from touchterm.keyboard.modifiers import ModifierStateMachine

    cfg = settings.client
    client = ConsoleClient(
        transport=WebSocketTransport(url or cfg.url),
        toolbar=cfg.toolbar,
        modifiers=ModifierStateMachine(
            cfg.modifiers, reset_active_on_unlock=cfg.reset_active_on_unlock,
        ),
        composer=KeyComposer(stack_escape_prefixes=cfg.stack_escape_prefixes),
        metrics=FontMetrics(char_width=cfg.char_width, line_height=cfg.line_height),
        min_cols=cfg.min_cols,
        min_rows=cfg.min_rows,
        prefix_key=cfg.prefix_key,
    )
    await client.run()


def _base_url(channel_url: str) -> str:
    """http(s) base URL of the server that hosts a ws(s) channel URL."""
    scheme, _, rest = channel_url.partition("://")
    host = rest.split("/", 1)[0]
    return f"{'https' if scheme == 'wss' else 'http'}://{host}"


def _status(settings, url: str | None) -> int:
    """Print the endpoint health. Returns the process exit code."""
    import httpx

    base = (url or _base_url(settings.client.url)).rstrip("/")
    try:
        resp = httpx.get(f"{base}/health", timeout=5.0)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        print(f"{base}: unreachable ({e})")
        return 1
    data = resp.json()
    print(f"{base}: {data.get('status')}")
    print(f"  Active sessions: {data.get('active_sessions')}")
    print(f"  Output encoding: {data.get('output_encoding')}")
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the touchterm CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from touchterm.config.settings import load_settings
    from touchterm.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "serve":
        logger.info("Starting session endpoint")
        _serve(settings)

    elif args.command == "connect":
        from touchterm.client.transport import TransportError

        try:
            asyncio.run(_connect(settings, args.url))
        except TransportError as e:
            logger.error("%s", e)
            sys.exit(1)

    elif args.command == "status":
        sys.exit(_status(settings, args.url))


if __name__ == "__main__":
    main()
