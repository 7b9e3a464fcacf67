"""FastAPI server for the terminal session endpoint.

Exposes the control channel as a websocket and, optionally, the static
client from the same listener:

    GET  /health   -> {"status": "ok", "active_sessions": N}
    WS   /ws       <- input / resize frames, -> output frames
    GET  /*        -> files from the configured static directory
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, WebSocket
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from touchterm.endpoint.session import ProcessFactory, SessionError, SessionManager
from touchterm.endpoint.shell import DEFAULT_READ_CHUNK_SIZE, DEFAULT_TERM_NAME
from touchterm.protocol.channel import OutputEncoding

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str = "ok"
    active_sessions: int = 0
    output_encoding: str = "base64"


def create_app(
    manager: SessionManager | None = None,
    process_factory: ProcessFactory | None = None,
    output_encoding: OutputEncoding = "base64",
    term_name: str = DEFAULT_TERM_NAME,
    read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
    websocket_path: str = "/ws",
    static_dir: Path | str | None = None,
) -> FastAPI:
    """Create the session endpoint application.

    Args:
        manager: Optional pre-configured SessionManager (for testing).
        process_factory: Optional process factory passed to a new
            SessionManager (for testing).
        output_encoding: Encoding of ``output`` frames.
        term_name: TERM value exported to spawned shells.
        read_chunk_size: Maximum bytes per output frame.
        websocket_path: Route of the control channel.
        static_dir: Directory served at ``/``, if any.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Session endpoint started (channel=%s)", websocket_path)
        yield
        await app.state.manager.close_all()
        logger.info("Session endpoint stopped")

    app = FastAPI(
        title="touchterm",
        description="Remote terminal session endpoint",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.manager = manager or SessionManager(
        process_factory=process_factory,
        output_encoding=output_encoding,
        term_name=term_name,
        read_chunk_size=read_chunk_size,
    )

    @app.get("/health")
    async def health_check() -> HealthResponse:
        m: SessionManager = app.state.manager
        return HealthResponse(
            status="ok",
            active_sessions=m.active_count,
            output_encoding=m.output_encoding,
        )

    @app.websocket(websocket_path)
    async def terminal_channel(websocket: WebSocket) -> None:
        m: SessionManager = app.state.manager
        client = websocket.client
        logger.info("Channel connected from %s", f"{client.host}:{client.port}" if client else "?")
        try:
            await m.serve(websocket)
        except SessionError as e:
            logger.error("Session %s not started: %s", e.session_id, e)

    if static_dir is not None:
        static_path = Path(static_dir)
        if static_path.is_dir():
            app.mount("/", StaticFiles(directory=static_path, html=True), name="static")
            logger.info("Serving static files from %s", static_path)
        else:
            logger.warning("Static directory %s not found, serving channel only", static_path)

    return app


def main(host: str = "0.0.0.0", port: int = 3000) -> None:
    """Run the session endpoint standalone with defaults."""
    app = create_app()
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
