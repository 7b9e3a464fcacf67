"""Key composition: raw key + sticky modifiers -> bytes for the shell.

Reference: xterm control sequences (normal cursor key mode) and the
classic ASCII control-character table, where Ctrl+<letter> clears bit 6
of the uppercase letter (``ord(letter) - 0x40``).

Composition rules:

- Printable character with Ctrl effective: letters map to 0x01-0x1A,
  a few punctuation marks map through ``CTRL_SPECIAL``, anything else
  is sent unchanged.
- Named keys (arrows, Enter, ...) map through ``NAMED_KEYS``; Ctrl has
  no effect on them.
- Alt/Meta effective: the result is prefixed with ESC.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from touchterm.domain.models import META_CLASS_MODIFIERS, KeyEvent, ModifierName

logger = logging.getLogger(__name__)

ESC = "\x1b"

# ---------------------------------------------------------------------------
# Ctrl + punctuation -> control byte
# ---------------------------------------------------------------------------

CTRL_SPECIAL: dict[str, str] = {
    "@": "\x00",
    "[": "\x1b",
    "\\": "\x1c",
    "]": "\x1d",
    "^": "\x1e",
    "_": "\x1f",
    "?": "\x7f",
}

# ---------------------------------------------------------------------------
# Named (non-printable) key -> byte sequence
# ---------------------------------------------------------------------------

NAMED_KEYS: dict[str, str] = {
    # Cursor keys (CSI)
    "ArrowUp": ESC + "[A", "Up": ESC + "[A",
    "ArrowDown": ESC + "[B", "Down": ESC + "[B",
    "ArrowRight": ESC + "[C", "Right": ESC + "[C",
    "ArrowLeft": ESC + "[D", "Left": ESC + "[D",
    # Editing keys
    "Enter": "\r",
    "Backspace": "\x7f",
    "Tab": "\t",
    "Escape": ESC, "Esc": ESC,
    # Navigation
    "Home": ESC + "[H",
    "End": ESC + "[F",
    "Insert": ESC + "[2~",
    "Delete": ESC + "[3~",
    "PageUp": ESC + "[5~",
    "PageDown": ESC + "[6~",
}

_ESCAPE_TOKEN = re.compile(r"\\x([0-9A-Fa-f]{2})|\\t|\\n")


def to_ctrl_char(char: str) -> str:
    """Convert a printable character to its Ctrl control byte.

    Returns:
        The control character, or an empty string if Ctrl+char has no
        mapping.
    """
    if not char:
        return ""
    c = char[0]
    if c.isascii() and c.isalpha():
        return chr(ord(c.upper()) - 0x40)
    return CTRL_SPECIAL.get(c, "")


def decode_escape_spec(spec: str) -> str:
    """Decode a declarative toolbar escape spec into literal characters.

    Recognized tokens are ``\\xHH`` (one byte given in hex), ``\\t`` and
    ``\\n``. Everything else is kept as written.

    Example::

        decode_escape_spec(r"\\x1b[A")  # -> "\\x1b[A"
    """

    def _replace(match: re.Match[str]) -> str:
        if match.group(1) is not None:
            return chr(int(match.group(1), 16))
        return "\t" if match.group(0) == "\\t" else "\n"

    return _ESCAPE_TOKEN.sub(_replace, spec)


class KeyComposer:
    """Builds the byte sequence for one keystroke.

    The composer is stateless: the caller passes the set of modifiers
    that are currently effective and is responsible for resetting
    single-use modifiers afterwards.

    Args:
        stack_escape_prefixes: When True, each effective Alt/Meta adds
            its own ESC prefix (Alt+Meta gives two). By default a single
            ESC is added however many of them are effective.
    """

    def __init__(self, stack_escape_prefixes: bool = False) -> None:
        self._stack_escape_prefixes = stack_escape_prefixes

    def compose(self, event: KeyEvent, effective: Iterable[ModifierName]) -> str:
        """Compose the sequence for ``event`` under the given modifiers.

        Returns:
            The sequence to send. Empty for named keys with no mapping.
        """
        mods = frozenset(effective)
        if event.printable:
            out = self._compose_printable(event.key, ModifierName.CTRL in mods)
        else:
            out = NAMED_KEYS.get(event.key, "")
            if not out:
                logger.debug("No sequence for named key %r", event.key)
                return ""
        return self._escape_prefix(mods) + out

    @staticmethod
    def _compose_printable(char: str, ctrl: bool) -> str:
        if not ctrl:
            return char
        # Unmappable combinations fall back to the raw character
        return to_ctrl_char(char) or char

    def _escape_prefix(self, mods: frozenset[ModifierName]) -> str:
        count = sum(1 for name in META_CLASS_MODIFIERS if name in mods)
        if not self._stack_escape_prefixes:
            count = min(count, 1)
        return ESC * count
