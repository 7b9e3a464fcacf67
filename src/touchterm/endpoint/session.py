"""Session bridge between one websocket and one shell process.

Every connection gets a brand-new shell at 80x24. Input frames are
written to the shell in arrival order, resize frames are applied to the
running shell, and each output chunk becomes one ``output`` frame. When
the connection ends, from either side, the shell is killed at once.
Nothing is kept for a later reconnect.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from typing import Any, Callable

from starlette.websockets import WebSocketDisconnect

from touchterm.domain.models import (
    DEFAULT_GEOMETRY,
    InputMessage,
    ResizeMessage,
    TerminalGeometry,
)
from touchterm.endpoint.shell import (
    DEFAULT_READ_CHUNK_SIZE,
    DEFAULT_TERM_NAME,
    ProcessHandle,
    PtyProcess,
    ShellError,
)
from touchterm.protocol.channel import (
    OutputEncoder,
    OutputEncoding,
    decode_client_message,
    encode_message,
)

logger = logging.getLogger(__name__)

ProcessFactory = Callable[[TerminalGeometry], ProcessHandle]

# Close code sent when the shell cannot be started
CLOSE_SPAWN_FAILED = 1011


class SessionState(str, enum.Enum):
    """Lifecycle of a session. Closed is terminal."""

    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSED = "closed"


class SessionError(Exception):
    """Raised when a session cannot be brought up."""

    def __init__(self, message: str, session_id: str = "") -> None:
        super().__init__(message)
        self.session_id = session_id


class TerminalSession:
    """One connection paired with one spawned shell.

    The session exclusively owns its process and geometry. The
    websocket must already be accepted.
    """

    def __init__(
        self,
        websocket: Any,
        process: ProcessHandle,
        encoder: OutputEncoder,
        geometry: TerminalGeometry = DEFAULT_GEOMETRY,
    ) -> None:
        self.session_id = uuid.uuid4().hex[:8]
        self._websocket = websocket
        self._process = process
        self._encoder = encoder
        self._geometry = geometry
        self._state = SessionState.CONNECTING
        self._output_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def geometry(self) -> TerminalGeometry:
        return self._geometry

    @property
    def process(self) -> ProcessHandle:
        return self._process

    async def start(self) -> None:
        """Spawn the shell and start forwarding its output.

        Raises:
            SessionError: If the shell cannot be spawned.
        """
        if self._state is not SessionState.CONNECTING:
            raise SessionError(f"Session {self.session_id} already {self._state.value}", self.session_id)
        try:
            await self._process.start()
        except ShellError as e:
            self._state = SessionState.CLOSED
            raise SessionError(f"Failed to spawn shell: {e}", self.session_id) from e
        self._state = SessionState.ACTIVE
        self._output_task = asyncio.create_task(self._forward_output())
        logger.info(
            "Session %s active (%dx%d)",
            self.session_id, self._geometry.cols, self._geometry.rows,
        )

    async def run(self) -> None:
        """Relay client frames until the connection terminates."""
        while self._state is SessionState.ACTIVE:
            try:
                frame = await self._websocket.receive()
            except (WebSocketDisconnect, RuntimeError):
                break
            if frame.get("type") == "websocket.disconnect":
                break
            raw = frame.get("text")
            if raw is None:
                raw = frame.get("bytes")
            if raw is None:
                continue
            message = decode_client_message(raw)
            if message is not None:
                self.handle_message(message)

    def handle_message(self, message: InputMessage | ResizeMessage) -> None:
        """Apply one client message to the shell.

        Failures against a shell that has already exited are discarded.
        """
        if isinstance(message, InputMessage):
            try:
                self._process.write(message.data.encode("utf-8", errors="replace"))
            except ShellError as e:
                logger.debug("Session %s: input discarded: %s", self.session_id, e)
            return

        try:
            self._process.resize(message.cols, message.rows)
        except ShellError as e:
            logger.debug("Session %s: resize discarded: %s", self.session_id, e)
            return
        self._geometry = message.geometry

    async def close(self) -> None:
        """Kill the shell and stop forwarding. Safe to call repeatedly."""
        if self._state is SessionState.CLOSED and self._output_task is None:
            return
        self._state = SessionState.CLOSED

        try:
            self._process.kill()
        except Exception as e:
            logger.debug("Session %s: kill failed: %s", self.session_id, e)

        if self._output_task is not None:
            self._output_task.cancel()
            try:
                await self._output_task
            except asyncio.CancelledError:
                pass
            self._output_task = None
        logger.info("Session %s closed", self.session_id)

    async def _forward_output(self) -> None:
        """Send each output chunk as one frame, in production order."""
        try:
            while True:
                chunk = await self._process.read()
                if not chunk:
                    break
                await self._send(self._encoder.encode(chunk))
            await self._send(self._encoder.flush())
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            logger.debug("Session %s: output stopped: %s", self.session_id, e)
            return
        logger.info("Session %s: shell exited", self.session_id)

    async def _send(self, message: Any) -> None:
        if message is None:
            return
        await self._websocket.send_text(encode_message(message))


class SessionManager:
    """Creates and tears down one session per accepted connection.

    Args:
        process_factory: Builds the process for a new session from its
            initial geometry. Defaults to a ``PtyProcess`` running the
            platform shell.
        output_encoding: Encoding used for ``output`` frames.
    """

    def __init__(
        self,
        process_factory: ProcessFactory | None = None,
        output_encoding: OutputEncoding = "base64",
        term_name: str = DEFAULT_TERM_NAME,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
    ) -> None:
        self._process_factory = process_factory or self._default_factory
        self._output_encoding = output_encoding
        self._term_name = term_name
        self._read_chunk_size = read_chunk_size
        self._sessions: dict[str, TerminalSession] = {}

    @property
    def output_encoding(self) -> OutputEncoding:
        return self._output_encoding

    @property
    def active_count(self) -> int:
        return sum(1 for s in self._sessions.values() if s.state is SessionState.ACTIVE)

    def _default_factory(self, geometry: TerminalGeometry) -> ProcessHandle:
        return PtyProcess(
            cols=geometry.cols,
            rows=geometry.rows,
            term_name=self._term_name,
            read_chunk_size=self._read_chunk_size,
        )

    async def serve(self, websocket: Any) -> None:
        """Run a full Connecting -> Active -> Closed lifecycle.

        Accepts the websocket, spawns the shell, relays until the
        connection ends, then kills the shell.

        Raises:
            SessionError: If the shell could not be spawned. The
                websocket is closed with code 1011 first.
        """
        await websocket.accept()
        session = TerminalSession(
            websocket,
            self._process_factory(DEFAULT_GEOMETRY),
            OutputEncoder(self._output_encoding),
        )
        self._sessions[session.session_id] = session
        try:
            try:
                await session.start()
            except SessionError:
                logger.error("Session %s: shell spawn failed", session.session_id)
                try:
                    await websocket.close(code=CLOSE_SPAWN_FAILED)
                except RuntimeError:
                    pass
                raise
            await session.run()
        finally:
            await session.close()
            self._sessions.pop(session.session_id, None)

    async def close_all(self) -> None:
        """Close every open session (server shutdown)."""
        for session in list(self._sessions.values()):
            await session.close()
