"""Abstract base class for the client side of the control channel.

Transports carry JSON text frames to and from the session endpoint.
Key handlers run synchronously, so outgoing messages are posted to a
queue and written by a single writer task, which keeps them in order.
Messages posted while the channel is not open are dropped, never
queued for later.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator

from touchterm.domain.models import InputMessage, OutputMessage, ResizeMessage, TerminalGeometry
from touchterm.protocol.channel import decode_message, encode_message

logger = logging.getLogger(__name__)

ClientMessage = InputMessage | ResizeMessage


class TerminalTransport(ABC):
    """Abstract duplex channel to a terminal session.

    Example usage::

        async with WebSocketTransport("ws://localhost:3000/ws") as channel:
            channel.post_input("ls -la\\r")
            async for message in channel.messages():
                ...
    """

    def __init__(self) -> None:
        self._outbox: asyncio.Queue[str] | None = None
        self._writer_task: asyncio.Task[None] | None = None

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether frames can currently be sent."""
        ...

    @abstractmethod
    async def connect(self) -> None:
        """Open the channel.

        Raises:
            TransportError: If the endpoint cannot be reached.
        """
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the channel. Safe to call multiple times."""
        ...

    @abstractmethod
    async def send_frame(self, frame: str) -> None:
        """Write one text frame.

        Raises:
            TransportError: If the frame cannot be written.
        """
        ...

    @abstractmethod
    async def receive_frame(self) -> str | bytes | None:
        """Wait for the next frame; None once the channel has closed."""
        ...

    # -----------------------------------------------------------------
    # Sending
    # -----------------------------------------------------------------

    def post(self, message: ClientMessage) -> bool:
        """Queue a message for sending without waiting.

        Returns:
            False if the channel is not open and the message was dropped.
        """
        if not self.is_open:
            logger.warning("Channel not open, dropping %s message", message.type)
            return False
        if self._outbox is None:
            self._outbox = asyncio.Queue()
            self._writer_task = asyncio.create_task(self._writer_loop(self._outbox))
        self._outbox.put_nowait(encode_message(message))
        return True

    def post_input(self, data: str) -> bool:
        return self.post(InputMessage(data=data))

    def post_resize(self, geometry: TerminalGeometry) -> bool:
        return self.post(ResizeMessage(cols=geometry.cols, rows=geometry.rows))

    async def send_message(self, message: ClientMessage) -> bool:
        """Send a message right away (bypassing the queue).

        Returns:
            False if the channel is not open and the message was dropped.
        """
        if not self.is_open:
            logger.warning("Channel not open, dropping %s message", message.type)
            return False
        await self.send_frame(encode_message(message))
        return True

    async def drain(self) -> None:
        """Wait until every posted message has been written."""
        if self._outbox is not None:
            await self._outbox.join()

    async def _writer_loop(self, outbox: asyncio.Queue[str]) -> None:
        while True:
            frame = await outbox.get()
            try:
                await self.send_frame(frame)
            except TransportError as e:
                logger.warning("Dropped frame: %s", e)
            finally:
                outbox.task_done()

    async def _stop_writer(self) -> None:
        """Cancel the writer task; subclasses call this from disconnect()."""
        if self._writer_task is not None:
            self._writer_task.cancel()
            try:
                await self._writer_task
            except asyncio.CancelledError:
                pass
        self._writer_task = None
        self._outbox = None

    # -----------------------------------------------------------------
    # Receiving
    # -----------------------------------------------------------------

    async def messages(self) -> AsyncIterator[OutputMessage]:
        """Yield output messages until the channel closes.

        Frames that are not valid ``output`` messages are skipped.
        """
        while True:
            frame = await self.receive_frame()
            if frame is None:
                return
            message = decode_message(frame)
            if isinstance(message, OutputMessage):
                yield message

    async def __aenter__(self) -> TerminalTransport:
        """Async context manager entry -- opens the channel."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Async context manager exit -- closes the channel."""
        await self.disconnect()


class TransportError(Exception):
    """Raised when the control channel fails."""

    def __init__(self, message: str, url: str = "") -> None:
        super().__init__(message)
        self.url = url
