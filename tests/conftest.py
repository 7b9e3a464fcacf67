"""Shared test fixtures for the touchterm test suite.

Provides common fixtures used across the unit tests: modifier state,
a composer, a controller wired to a recording sink, and fake shell
processes that stand in for real ptys.
"""

from __future__ import annotations

import asyncio

import pytest

from touchterm.client.controller import InputController
from touchterm.domain.models import TerminalGeometry
from touchterm.endpoint.shell import ShellError
from touchterm.keyboard.composer import KeyComposer
from touchterm.keyboard.modifiers import ModifierStateMachine


# ---------------------------------------------------------------------------
# Client-side fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def modifiers() -> ModifierStateMachine:
    """Fresh sticky state for ctrl, alt and meta."""
    return ModifierStateMachine()


@pytest.fixture
def composer() -> KeyComposer:
    return KeyComposer()


@pytest.fixture
def sent() -> list[str]:
    """Sequences received by the controller's sink, in order."""
    return []


@pytest.fixture
def controller(modifiers: ModifierStateMachine, composer: KeyComposer, sent: list[str]) -> InputController:
    """An InputController whose sink records into ``sent``."""
    return InputController(
        modifiers=modifiers,
        composer=composer,
        sink=sent.append,
        clipboard=lambda: "",
    )


# ---------------------------------------------------------------------------
# Fake shell processes
# ---------------------------------------------------------------------------


class FakeProcess:
    """In-memory stand-in for PtyProcess.

    Output chunks are queued up front or, with ``echo``, produced by
    writes (the data itself) and resizes (``[COLSxROWS]``).
    """

    def __init__(
        self,
        geometry: TerminalGeometry,
        chunks: tuple[bytes, ...] = (),
        echo: bool = False,
        fail_start: bool = False,
    ) -> None:
        self.geometry = geometry
        self.writes: list[bytes] = []
        self.resizes: list[tuple[int, int]] = []
        self.started = False
        self.killed = False
        self.exited = False
        self._echo = echo
        self._fail_start = fail_start
        self._output: asyncio.Queue[bytes] = asyncio.Queue()
        for chunk in chunks:
            self._output.put_nowait(chunk)

    @property
    def is_alive(self) -> bool:
        return self.started and not self.killed and not self.exited

    async def start(self) -> None:
        if self._fail_start:
            raise ShellError("Cannot fork shell bash: out of processes")
        self.started = True

    async def read(self) -> bytes:
        return await self._output.get()

    def write(self, data: bytes) -> None:
        if not self.is_alive:
            raise ShellError("Shell is not alive")
        self.writes.append(data)
        if self._echo:
            self._output.put_nowait(data)

    def resize(self, cols: int, rows: int) -> None:
        if not self.is_alive:
            raise ShellError("Shell is not alive")
        self.resizes.append((cols, rows))
        if self._echo:
            self._output.put_nowait(f"[{cols}x{rows}]".encode())

    def kill(self) -> None:
        self.killed = True
        self._output.put_nowait(b"")

    def exit(self) -> None:
        """Simulate the shell exiting on its own."""
        self.exited = True
        self._output.put_nowait(b"")


class FakeProcessFactory:
    """Process factory that records every FakeProcess it creates."""

    def __init__(self, **kwargs: object) -> None:
        self._kwargs = kwargs
        self.processes: list[FakeProcess] = []

    def __call__(self, geometry: TerminalGeometry) -> FakeProcess:
        process = FakeProcess(geometry, **self._kwargs)  # type: ignore[arg-type]
        self.processes.append(process)
        return process


@pytest.fixture
def echo_factory() -> FakeProcessFactory:
    """Factory for processes that echo input and report resizes."""
    return FakeProcessFactory(echo=True)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll ``predicate`` on the event loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def make_process() -> type[FakeProcess]:
    """The FakeProcess class, for tests that build processes directly."""
    return FakeProcess


@pytest.fixture
def make_factory() -> type[FakeProcessFactory]:
    """The FakeProcessFactory class; call it with FakeProcess options."""
    return FakeProcessFactory


@pytest.fixture(name="wait_until")
def wait_until_fixture():
    return wait_until
