"""WebSocket transport for the control channel."""

from __future__ import annotations

import logging

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidURI, WebSocketException
from websockets.protocol import State

from touchterm.client.transport import TerminalTransport, TransportError

logger = logging.getLogger(__name__)


class WebSocketTransport(TerminalTransport):
    """Connects to the session endpoint over a websocket."""

    def __init__(self, url: str = "ws://localhost:3000/ws", open_timeout: float = 10.0) -> None:
        super().__init__()
        self._url = url
        self._open_timeout = open_timeout
        self._ws: ClientConnection | None = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def is_open(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    async def connect(self) -> None:
        """Open the websocket (no subprotocol, no compression)."""
        try:
            self._ws = await connect(
                self._url,
                open_timeout=self._open_timeout,
                compression=None,
            )
        except (OSError, InvalidURI, WebSocketException, TimeoutError) as e:
            raise TransportError(f"Failed to connect to {self._url}: {e}", url=self._url) from e
        logger.info("Connected to %s", self._url)

    async def disconnect(self) -> None:
        await self._stop_writer()
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
            logger.info("Disconnected from %s", self._url)

    async def send_frame(self, frame: str) -> None:
        if self._ws is None:
            raise TransportError("Not connected", url=self._url)
        try:
            await self._ws.send(frame)
        except ConnectionClosed as e:
            raise TransportError(f"Connection closed: {e}", url=self._url) from e

    async def receive_frame(self) -> str | bytes | None:
        if self._ws is None:
            return None
        try:
            return await self._ws.recv()
        except ConnectionClosed:
            return None
