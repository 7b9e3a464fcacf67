"""Tests for the pty-backed shell process."""

from __future__ import annotations

import asyncio
import signal
import sys
from unittest.mock import MagicMock, patch

import pytest

from touchterm.endpoint.shell import PtyProcess, ShellError, default_shell


class TestDefaultShell:
    def test_posix(self) -> None:
        with patch.object(sys, "platform", "linux"):
            assert default_shell() == ["bash"]

    def test_windows(self) -> None:
        with patch.object(sys, "platform", "win32"):
            assert default_shell() == ["powershell.exe"]


class TestNotStarted:
    def test_initial_state(self) -> None:
        proc = PtyProcess(command=["sh"])
        assert proc.is_alive is False
        assert proc.pid is None
        assert (proc.cols, proc.rows) == (80, 24)

    def test_write_raises(self) -> None:
        with pytest.raises(ShellError, match="not alive"):
            PtyProcess().write(b"ls\r")

    def test_resize_raises(self) -> None:
        with pytest.raises(ShellError, match="not alive"):
            PtyProcess().resize(100, 30)

    def test_kill_is_noop(self) -> None:
        proc = PtyProcess()
        proc.kill()
        assert proc.is_alive is False

    @pytest.mark.asyncio
    async def test_read_returns_eof(self) -> None:
        assert await PtyProcess().read() == b""


def _started(proc: PtyProcess, pid: int = 4242, fd: int = 99) -> PtyProcess:
    proc._pid = pid
    proc._master_fd = fd
    proc._is_alive = True
    return proc


class TestStartedProcess:
    def test_write_loops_over_partial_writes(self) -> None:
        proc = _started(PtyProcess())
        with patch("os.write", side_effect=[2, 3]) as mock_write:
            proc.write(b"hello")
        assert mock_write.call_count == 2
        assert bytes(mock_write.call_args_list[1].args[1]) == b"llo"

    def test_write_error_wrapped(self) -> None:
        proc = _started(PtyProcess())
        with patch("os.write", side_effect=OSError(5, "EIO")):
            with pytest.raises(ShellError, match="Failed to write"):
                proc.write(b"x")

    def test_resize_sets_winsize(self) -> None:
        proc = _started(PtyProcess())
        with patch("fcntl.ioctl") as mock_ioctl:
            proc.resize(100, 30)
        mock_ioctl.assert_called_once()
        assert (proc.cols, proc.rows) == (100, 30)

    def test_resize_out_of_range(self) -> None:
        proc = _started(PtyProcess())
        with patch("fcntl.ioctl"):
            with pytest.raises(ShellError, match="Failed to resize"):
                proc.resize(70000, 30)
        assert (proc.cols, proc.rows) == (80, 24)

    def test_kill_signals_group_and_reaps(self) -> None:
        proc = _started(PtyProcess(), pid=4242, fd=99)
        with patch("os.killpg") as mock_killpg, \
                patch("os.kill") as mock_kill, \
                patch("os.waitpid", return_value=(4242, 0)) as mock_waitpid, \
                patch("os.close") as mock_close:
            proc.kill()

        mock_killpg.assert_called_once_with(4242, signal.SIGHUP)
        mock_kill.assert_called_once_with(4242, signal.SIGKILL)
        mock_waitpid.assert_called_once()
        mock_close.assert_called_once_with(99)
        assert proc.is_alive is False
        assert proc.pid is None

    def test_kill_discards_errors(self) -> None:
        proc = _started(PtyProcess())
        with patch("os.killpg", side_effect=ProcessLookupError), \
                patch("os.kill", side_effect=ProcessLookupError), \
                patch("os.waitpid", side_effect=ChildProcessError), \
                patch("os.close", side_effect=OSError):
            proc.kill()
        assert proc.is_alive is False

    def test_kill_twice(self) -> None:
        proc = _started(PtyProcess())
        killpg = MagicMock()
        with patch("os.killpg", killpg), patch("os.kill"), \
                patch("os.waitpid", return_value=(4242, 0)), patch("os.close"):
            proc.kill()
            proc.kill()
        assert killpg.call_count == 1


class TestInputBacklog:
    def test_full_pty_queues_rest_behind_writer(self) -> None:
        proc = _started(PtyProcess(), fd=99)
        proc._loop = MagicMock()
        with patch("os.write", side_effect=[3, BlockingIOError]):
            proc.write(b"abcdef")
        proc._loop.add_writer.assert_called_once_with(99, proc._flush_pending)

        with patch("os.write") as mock_write:
            proc.write(b"gh")
        mock_write.assert_not_called()

        written: list[bytes] = []

        def _accept(fd, view):
            written.append(bytes(view))
            return len(view)

        with patch("os.write", side_effect=_accept):
            proc._flush_pending()
        assert written == [b"defgh"]
        proc._loop.remove_writer.assert_called_once_with(99)

    def test_partial_flush_keeps_writer(self) -> None:
        proc = _started(PtyProcess(), fd=99)
        proc._loop = MagicMock()
        with patch("os.write", side_effect=BlockingIOError):
            proc.write(b"0123456789")
        with patch("os.write", side_effect=[4, BlockingIOError]):
            proc._flush_pending()
        assert bytes(proc._pending) == b"456789"
        proc._loop.remove_writer.assert_not_called()

    def test_kill_drops_backlog(self) -> None:
        proc = _started(PtyProcess(), fd=99)
        proc._loop = MagicMock()
        with patch("os.write", side_effect=BlockingIOError):
            proc.write(b"stuck")
        with patch("os.killpg"), patch("os.kill"), \
                patch("os.waitpid", return_value=(4242, 0)), patch("os.close"):
            proc.kill()
        proc._loop.remove_writer.assert_called_once_with(99)
        assert proc._pending == bytearray()


class TestStartFailure:
    @pytest.mark.asyncio
    async def test_openpty_failure(self) -> None:
        with patch("pty.openpty", side_effect=OSError("no ptys")):
            with pytest.raises(ShellError, match="Cannot open pty"):
                await PtyProcess().start()

    @pytest.mark.asyncio
    async def test_fork_failure(self) -> None:
        with patch("pty.openpty", return_value=(10, 11)), \
                patch("touchterm.endpoint.shell._set_winsize"), \
                patch("os.fork", side_effect=OSError("EAGAIN")), \
                patch("os.close") as mock_close:
            proc = PtyProcess(command=["bash"])
            with pytest.raises(ShellError, match="Cannot fork shell bash"):
                await proc.start()
        assert proc.is_alive is False
        assert mock_close.call_count == 2


@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="needs a Linux pty")
class TestRealPty:
    @pytest.mark.asyncio
    async def test_cat_round_trip(self) -> None:
        proc = PtyProcess(command=["cat"], cols=100, rows=30)
        await proc.start()
        try:
            assert proc.is_alive is True
            proc.write(b"ping\n")
            received = b""
            while b"ping" not in received:
                received += await asyncio.wait_for(proc.read(), timeout=5.0)
            proc.resize(120, 40)
        finally:
            proc.kill()
        assert proc.is_alive is False
        assert await proc.read() == b""

    @pytest.mark.asyncio
    async def test_large_input_to_busy_child_does_not_block_loop(self) -> None:
        proc = PtyProcess(command=["sleep", "3"])
        await proc.start()
        ticks = 0

        async def _ticker() -> None:
            nonlocal ticks
            while True:
                await asyncio.sleep(0.01)
                ticks += 1

        ticker = asyncio.create_task(_ticker())
        try:
            loop = asyncio.get_running_loop()
            began = loop.time()
            proc.write(b"echo hi\n" * 20_000)
            proc.write(b"echo bye\n")
            assert loop.time() - began < 1.0
            await asyncio.sleep(0.2)
            assert ticks >= 5
        finally:
            ticker.cancel()
            proc.kill()
        assert proc.is_alive is False
