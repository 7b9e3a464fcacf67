"""Input controller: the single owner of sticky modifier state.

Two key sources feed the same connection: hardware key events from the
terminal widget, and text typed into a hidden input that keeps the
on-screen keyboard open. Both go through one controller, so a modifier
armed on the toolbar applies to whichever source produces the next key.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from touchterm.client.clipboard import read_clipboard
from touchterm.client.toolbar import (
    ClearButton,
    CommandButton,
    KeyButton,
    ModifierButton,
    PasteButton,
    SendButton,
    SendCtrlButton,
    ToolbarButton,
)
from touchterm.domain.models import KeyEvent, ModifierName
from touchterm.keyboard.composer import KeyComposer, decode_escape_spec, to_ctrl_char
from touchterm.keyboard.modifiers import ModifierStateMachine

logger = logging.getLogger(__name__)

InputSink = Callable[[str], object]


class InputController:
    """Routes toolbar taps and key events to the control channel.

    Args:
        modifiers: Sticky modifier state, shared by all key sources.
        composer: Turns keys plus modifiers into byte sequences.
        sink: Receives each composed sequence, normally by posting an
            ``input`` message on the channel.
        clipboard: Returns clipboard text, or ``""`` when unavailable.
        on_clear: Clears the local terminal view.
    """

    def __init__(
        self,
        modifiers: ModifierStateMachine,
        composer: KeyComposer,
        sink: InputSink,
        clipboard: Callable[[], str] = read_clipboard,
        on_clear: Callable[[], None] | None = None,
    ) -> None:
        self._modifiers = modifiers
        self._composer = composer
        self._sink = sink
        self._clipboard = clipboard
        self._on_clear = on_clear

    @property
    def modifiers(self) -> ModifierStateMachine:
        return self._modifiers

    # -----------------------------------------------------------------
    # Toolbar
    # -----------------------------------------------------------------

    def tap_modifier(self, name: ModifierName | str) -> None:
        self._modifiers.activate(name)

    def double_tap_modifier(self, name: ModifierName | str) -> None:
        self._modifiers.toggle_lock(name)

    def press(self, button: ToolbarButton) -> str:
        """Run the action of a toolbar button.

        Returns:
            The sequence sent, or ``""`` if nothing was sent.
        """
        if isinstance(button, ModifierButton):
            self.tap_modifier(button.modifier)
            return ""
        if isinstance(button, SendButton):
            return self.send_literal(button.send)
        if isinstance(button, SendCtrlButton):
            return self.send_ctrl(button.char)
        if isinstance(button, KeyButton):
            return self.handle_key(KeyEvent(key=button.key, printable=False))
        if isinstance(button, CommandButton):
            return self.run_command(button.command)
        if isinstance(button, PasteButton):
            return self.paste()
        if isinstance(button, ClearButton):
            self.clear()
            return ""
        raise ValueError(f"Unknown toolbar button: {button!r}")

    def send_literal(self, spec: str) -> str:
        """Send a declared escape spec; modifiers do not apply."""
        return self.dispatch(decode_escape_spec(spec))

    def send_ctrl(self, char: str) -> str:
        """Send Ctrl+char, or the raw char when it has no control byte."""
        return self.dispatch(to_ctrl_char(char) or char)

    def run_command(self, command: str) -> str:
        """Send a quick command followed by a newline."""
        data = command + "\n"
        self._sink(data)
        return data

    def paste(self) -> str:
        """Send the clipboard text verbatim. Nothing is sent if it is empty.

        Inside a running event loop the clipboard is read in an executor
        and the text is sent once the read finishes; ``""`` is returned.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return self._send_paste(self._clipboard())
        future = loop.run_in_executor(None, self._clipboard)
        future.add_done_callback(self._on_clipboard_read)
        return ""

    def _on_clipboard_read(self, future: asyncio.Future[str]) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.debug("Clipboard read failed: %s", error)
            return
        self._send_paste(future.result())

    def _send_paste(self, text: str) -> str:
        if text:
            self._sink(text)
        return text

    def clear(self) -> None:
        """Clear the local view only; the shell is not told."""
        if self._on_clear is not None:
            self._on_clear()

    # -----------------------------------------------------------------
    # Key sources
    # -----------------------------------------------------------------

    def handle_key(self, event: KeyEvent) -> str:
        """Hardware key source: compose one key event and send it."""
        sequence = self._composer.compose(event, self._modifiers.effective())
        return self.dispatch(sequence)

    def handle_virtual_input(self, text: str) -> str:
        """Hidden-input source: forward typed text one key at a time.

        A newline is treated as Enter.
        """
        sent = []
        for char in text:
            if char in ("\n", "\r"):
                event = KeyEvent(key="Enter", printable=False)
            else:
                event = KeyEvent(key=char, printable=True)
            sent.append(self.handle_key(event))
        return "".join(sent)

    def dispatch(self, sequence: str) -> str:
        """Send a sequence (if any) and clear single-use modifiers."""
        if sequence:
            logger.debug("Dispatching %r", sequence)
            self._sink(sequence)
        self._modifiers.reset_after_dispatch()
        return sequence
