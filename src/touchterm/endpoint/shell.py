"""Pseudo-terminal backed shell process.

Spawns an interactive shell on a pty so the remote user gets real
terminal behavior (line editing, job control, ANSI output), and exposes
the small handle the session bridge needs: ``write``, ``resize``,
``kill`` and an awaitable ``read`` that yields output chunks.
"""

from __future__ import annotations

import asyncio
import fcntl
import logging
import os
import pty
import select
import signal
import struct
import sys
import termios
from typing import Protocol

logger = logging.getLogger(__name__)

DEFAULT_TERM_NAME = "xterm-color"
DEFAULT_READ_CHUNK_SIZE = 4096


def default_shell() -> list[str]:
    """Shell command for the host platform. Not configurable."""
    if sys.platform == "win32":
        return ["powershell.exe"]
    return ["bash"]


class ProcessHandle(Protocol):
    """What a session needs from its spawned process."""

    @property
    def is_alive(self) -> bool: ...

    async def start(self) -> None: ...

    async def read(self) -> bytes: ...

    def write(self, data: bytes) -> None: ...

    def resize(self, cols: int, rows: int) -> None: ...

    def kill(self) -> None: ...


class PtyProcess:
    """Interactive shell subprocess attached to a pty.

    The child inherits the working directory and environment of the
    hosting process, with ``TERM`` set for the client's emulator.
    """

    def __init__(
        self,
        command: list[str] | None = None,
        cols: int = 80,
        rows: int = 24,
        term_name: str = DEFAULT_TERM_NAME,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
    ) -> None:
        self._command = command or default_shell()
        self._cols = cols
        self._rows = rows
        self._term_name = term_name
        self._read_chunk_size = read_chunk_size
        self._master_fd: int | None = None
        self._pid: int | None = None
        self._is_alive = False
        self._loop: asyncio.AbstractEventLoop | None = None
        # Input the pty could not take yet, flushed by a loop writer
        self._pending = bytearray()

    @property
    def is_alive(self) -> bool:
        return self._is_alive

    @property
    def pid(self) -> int | None:
        return self._pid

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def rows(self) -> int:
        return self._rows

    async def start(self) -> None:
        """Fork the shell on a fresh pty.

        Raises:
            ShellError: If the pty cannot be opened or the fork fails.
        """
        try:
            master_fd, slave_fd = pty.openpty()
        except OSError as e:
            raise ShellError(f"Cannot open pty: {e}") from e

        _set_winsize(slave_fd, self._cols, self._rows)

        env = os.environ.copy()
        env["TERM"] = self._term_name

        try:
            pid = os.fork()
        except OSError as e:
            os.close(master_fd)
            os.close(slave_fd)
            raise ShellError(f"Cannot fork shell {self._command[0]}: {e}") from e

        if pid == 0:
            # Child process
            try:
                os.close(master_fd)
                os.setsid()
                fcntl.ioctl(slave_fd, termios.TIOCSCTTY, 0)
                os.dup2(slave_fd, 0)
                os.dup2(slave_fd, 1)
                os.dup2(slave_fd, 2)
                if slave_fd > 2:
                    os.close(slave_fd)
                os.execvpe(self._command[0], self._command, env)
            finally:
                os._exit(127)

        # Parent process
        os.close(slave_fd)
        self._pid = pid
        self._master_fd = master_fd

        # Make master_fd non-blocking
        flags = fcntl.fcntl(master_fd, fcntl.F_GETFL)
        fcntl.fcntl(master_fd, fcntl.F_SETFL, flags | os.O_NONBLOCK)

        self._loop = asyncio.get_running_loop()
        self._is_alive = True
        logger.info(
            "Started shell %s (pid=%d, %dx%d)",
            self._command[0], pid, self._cols, self._rows,
        )

    async def read(self) -> bytes:
        """Wait for the next chunk of output.

        Returns:
            The bytes exactly as the pty delivered them, or ``b""`` once
            the process has exited or been killed.
        """
        loop = asyncio.get_running_loop()
        while self._is_alive and self._master_fd is not None:
            data = await loop.run_in_executor(None, self._read_master, self._master_fd)
            if data is None:
                continue
            if not data:
                self._is_alive = False
            return data
        return b""

    def write(self, data: bytes) -> None:
        """Write input to the shell, preserving byte order.

        Never blocks. Whatever the pty cannot take right now is kept and
        written by a loop writer callback once the fd is writable again;
        later writes queue up behind it.

        Raises:
            ShellError: If the process is gone or the write fails.
        """
        if not self._is_alive or self._master_fd is None:
            raise ShellError("Shell is not alive")
        if self._pending:
            self._pending += data
            return
        try:
            written = self._write_some(self._master_fd, data)
        except OSError as e:
            raise ShellError(f"Failed to write to shell: {e}") from e
        if written < len(data):
            self._queue_pending(data[written:])

    def _write_some(self, fd: int, data: bytes | bytearray) -> int:
        """Write until done or the pty is full. Returns bytes written."""
        total = 0
        with memoryview(data) as view:
            while total < len(view):
                try:
                    total += os.write(fd, view[total:])
                except BlockingIOError:
                    break
        return total

    def _queue_pending(self, rest: bytes) -> None:
        if self._loop is None or self._master_fd is None:
            raise ShellError("Shell input buffer is full")
        self._pending += rest
        self._loop.add_writer(self._master_fd, self._flush_pending)
        logger.debug("Shell (pid=%s) input backlog %d bytes", self._pid, len(self._pending))

    def _flush_pending(self) -> None:
        fd = self._master_fd
        if fd is None:
            return
        try:
            written = self._write_some(fd, bytes(self._pending))
        except OSError as e:
            logger.debug("Shell (pid=%s) dropped %d pending bytes: %s", self._pid, len(self._pending), e)
            written = len(self._pending)
        del self._pending[:written]
        if not self._pending and self._loop is not None:
            self._loop.remove_writer(fd)

    def resize(self, cols: int, rows: int) -> None:
        """Apply a new window size to the running shell.

        Raises:
            ShellError: If the process is gone or the size is rejected.
        """
        if not self._is_alive or self._master_fd is None:
            raise ShellError("Shell is not alive")
        try:
            _set_winsize(self._master_fd, cols, rows)
        except (OSError, struct.error) as e:
            raise ShellError(f"Failed to resize shell to {cols}x{rows}: {e}") from e
        self._cols = cols
        self._rows = rows
        logger.debug("Resized shell (pid=%s) to %dx%d", self._pid, cols, rows)

    def kill(self) -> None:
        """Terminate the shell immediately. Errors are discarded."""
        pid, self._pid = self._pid, None
        fd, self._master_fd = self._master_fd, None
        self._is_alive = False

        if pid is not None:
            # The shell leads its own session; hang up the whole group
            try:
                os.killpg(pid, signal.SIGHUP)
            except OSError:
                pass
            try:
                os.kill(pid, signal.SIGKILL)
            except OSError:
                pass
            _reap(pid)

        if fd is not None:
            if self._pending and self._loop is not None:
                self._loop.remove_writer(fd)
            self._pending.clear()
            try:
                os.close(fd)
            except OSError:
                pass

        if pid is not None:
            logger.info("Shell killed (pid=%d)", pid)

    def _read_master(self, fd: int) -> bytes | None:
        """Read from the master fd (blocking call, run in executor).

        Returns None when nothing arrived within the poll interval.
        """
        try:
            r, _, _ = select.select([fd], [], [], 0.1)
            if r:
                return os.read(fd, self._read_chunk_size)
        except BlockingIOError:
            return None
        except (OSError, ValueError):
            # EIO once the child side is gone, EBADF after kill()
            return b""
        return None


def _set_winsize(fd: int, cols: int, rows: int) -> None:
    winsize = struct.pack("HHHH", rows, cols, 0, 0)
    fcntl.ioctl(fd, termios.TIOCSWINSZ, winsize)


def _reap(pid: int) -> None:
    """Collect the exit status so the child does not linger as a zombie."""
    try:
        reaped, _ = os.waitpid(pid, os.WNOHANG)
    except ChildProcessError:
        return
    if reaped == 0:
        # SIGKILL is delivered asynchronously; finish reaping off-loop
        loop = _running_loop()
        if loop is not None:
            loop.run_in_executor(None, _wait_quietly, pid)


def _wait_quietly(pid: int) -> None:
    try:
        os.waitpid(pid, 0)
    except ChildProcessError:
        pass


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class ShellError(Exception):
    """Raised when shell operations fail."""
