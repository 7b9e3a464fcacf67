"""Console front-end for the touchterm client.

Uses the local terminal as the rendering widget: stdin is put in raw
mode and decoded into key events, shell output is written straight to
stdout, and SIGWINCH drives resize notifications. Toolbar buttons are
reached through a prefix key (Ctrl-] by default) followed by the
button's hotkey; the uppercase hotkey of a modifier button double taps
it (toggles the lock). Prefix then ``q`` quits.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import signal
import sys
import termios
import tty
from typing import BinaryIO, Callable

from touchterm.client.controller import InputController
from touchterm.client.toolbar import ModifierButton, ToolbarButton
from touchterm.client.transport import TerminalTransport
from touchterm.client.viewport import FontMetrics, ViewportFitter
from touchterm.domain.models import KeyEvent
from touchterm.keyboard.composer import ESC, NAMED_KEYS, KeyComposer
from touchterm.keyboard.modifiers import ModifierStateMachine
from touchterm.protocol.channel import OutputDecoder

logger = logging.getLogger(__name__)

QUIT_HOTKEY = "q"
CLEAR_SCREEN = b"\x1b[2J\x1b[H"

# Sequences a local terminal sends, mapped back to key names
_LOCAL_SEQUENCES: dict[str, str] = {}
for _name, _seq in NAMED_KEYS.items():
    _LOCAL_SEQUENCES.setdefault(_seq, _name)
_LOCAL_SEQUENCES.update({
    ESC + "OA": "ArrowUp",
    ESC + "OB": "ArrowDown",
    ESC + "OC": "ArrowRight",
    ESC + "OD": "ArrowLeft",
    ESC + "OH": "Home",
    ESC + "OF": "End",
})
_ESCAPE_SEQUENCES = sorted(
    (seq for seq in _LOCAL_SEQUENCES if seq.startswith(ESC) and len(seq) > 1),
    key=len,
    reverse=True,
)


def tokenize_local_input(text: str) -> list[KeyEvent | str]:
    """Split raw local terminal input into key events.

    Known sequences and single characters become KeyEvents. Anything
    the local terminal already encoded (control bytes, ESC+char from a
    real Alt key) is returned as a plain string to pass through.
    """
    tokens: list[KeyEvent | str] = []
    i = 0
    while i < len(text):
        char = text[i]
        if char == ESC:
            match = next((s for s in _ESCAPE_SEQUENCES if text.startswith(s, i)), None)
            if match is not None:
                tokens.append(KeyEvent(key=_LOCAL_SEQUENCES[match], printable=False))
                i += len(match)
            elif text.startswith("[", i + 1):
                # Other CSI sequences (Ctrl+arrow etc.) pass through whole
                end = i + 2
                while end < len(text) and not "\x40" <= text[end] <= "\x7e":
                    end += 1
                tokens.append(text[i:end + 1])
                i = end + 1
            elif i + 1 < len(text):
                tokens.append(text[i:i + 2])
                i += 2
            else:
                tokens.append(KeyEvent(key="Escape", printable=False))
                i += 1
            continue
        if char in _LOCAL_SEQUENCES:
            tokens.append(KeyEvent(key=_LOCAL_SEQUENCES[char], printable=False))
        elif char.isprintable():
            tokens.append(KeyEvent(key=char, printable=True))
        else:
            tokens.append(char)
        i += 1
    return tokens


class LocalKeyReader:
    """Feeds decoded local input into an InputController.

    Handles the prefix key that gives access to toolbar buttons.
    """

    def __init__(
        self,
        controller: InputController,
        toolbar: list[ToolbarButton],
        prefix_key: str = "\x1d",
        on_quit: Callable[[], None] | None = None,
    ) -> None:
        self._controller = controller
        self._prefix_key = prefix_key
        self._on_quit = on_quit
        self._awaiting_hotkey = False
        self._hotkeys = {b.hotkey: b for b in toolbar if b.hotkey}

    def feed(self, text: str) -> None:
        for token in tokenize_local_input(text):
            if self._awaiting_hotkey:
                self._awaiting_hotkey = False
                self._run_hotkey(token)
            elif isinstance(token, str):
                if token == self._prefix_key:
                    self._awaiting_hotkey = True
                else:
                    self._controller.dispatch(token)
            else:
                self._controller.handle_key(token)

    def _run_hotkey(self, token: KeyEvent | str) -> None:
        key = token.key if isinstance(token, KeyEvent) else token
        if key == self._prefix_key:
            # Prefix twice sends the prefix byte itself
            self._controller.dispatch(key)
            return
        if key == QUIT_HOTKEY:
            if self._on_quit is not None:
                self._on_quit()
            return
        button = self._hotkeys.get(key)
        if button is not None:
            self._controller.press(button)
            return
        locked = self._hotkeys.get(key.lower())
        if isinstance(locked, ModifierButton) and key != key.lower():
            self._controller.double_tap_modifier(locked.modifier)
            return
        logger.debug("No toolbar hotkey %r", key)


class ConsoleClient:
    """Runs an interactive session against the endpoint in this terminal."""

    def __init__(
        self,
        transport: TerminalTransport,
        toolbar: list[ToolbarButton],
        modifiers: ModifierStateMachine | None = None,
        composer: KeyComposer | None = None,
        metrics: FontMetrics | None = None,
        min_cols: int = 20,
        min_rows: int = 6,
        prefix_key: str = "\x1d",
        stdin_fd: int | None = None,
        stdout: BinaryIO | None = None,
    ) -> None:
        self._transport = transport
        self._stdin_fd = sys.stdin.fileno() if stdin_fd is None else stdin_fd
        self._stdout = stdout or sys.stdout.buffer
        self._decoder = OutputDecoder()
        self._input_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._done: asyncio.Event | None = None

        self.controller = InputController(
            modifiers=modifiers or ModifierStateMachine(),
            composer=composer or KeyComposer(),
            sink=transport.post_input,
            on_clear=self._clear_screen,
        )
        self.fitter = ViewportFitter(
            metrics=metrics,
            min_cols=min_cols,
            min_rows=min_rows,
            on_resize=transport.post_resize,
        )
        self.reader = LocalKeyReader(
            self.controller, toolbar, prefix_key=prefix_key, on_quit=self.quit,
        )

    def quit(self) -> None:
        if self._done is not None:
            self._done.set()

    def refit(self) -> None:
        """Report the local terminal size to the endpoint."""
        try:
            size = os.get_terminal_size(self._stdin_fd)
        except OSError:
            return
        self.fitter.fit_cells(size.columns, size.lines)

    async def run(self) -> None:
        """Connect, relay until quit or disconnect, then restore the tty.

        Raises:
            TransportError: If the endpoint cannot be reached.
        """
        loop = asyncio.get_running_loop()
        self._done = asyncio.Event()
        await self._transport.connect()
        saved = termios.tcgetattr(self._stdin_fd)
        try:
            tty.setraw(self._stdin_fd)
            loop.add_reader(self._stdin_fd, self._on_stdin)
            loop.add_signal_handler(signal.SIGWINCH, self.refit)
            self.refit()

            output = asyncio.create_task(self._pump_output())
            quit_wait = asyncio.create_task(self._done.wait())
            await asyncio.wait({output, quit_wait}, return_when=asyncio.FIRST_COMPLETED)
            for task in (output, quit_wait):
                task.cancel()
        finally:
            loop.remove_reader(self._stdin_fd)
            loop.remove_signal_handler(signal.SIGWINCH)
            termios.tcsetattr(self._stdin_fd, termios.TCSADRAIN, saved)
            await self._transport.disconnect()

    def _on_stdin(self) -> None:
        try:
            data = os.read(self._stdin_fd, 1024)
        except OSError:
            data = b""
        if not data:
            self.quit()
            return
        self.reader.feed(self._input_decoder.decode(data))

    async def _pump_output(self) -> None:
        async for message in self._transport.messages():
            self._stdout.write(self._decoder.to_bytes(message))
            self._stdout.flush()

    def _clear_screen(self) -> None:
        self._stdout.write(CLEAR_SCREEN)
        self._stdout.flush()
