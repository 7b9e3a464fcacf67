"""Keyboard composition module for touchterm.

Turns toolbar taps and raw key events into the byte sequences a shell
expects.

Public API:
    ModifierStateMachine -- Sticky Ctrl/Alt/Meta state
    KeyComposer -- Key + modifiers -> byte sequence
"""

from touchterm.keyboard.composer import KeyComposer, decode_escape_spec, to_ctrl_char
from touchterm.keyboard.modifiers import ModifierStateMachine

__all__ = ["KeyComposer", "ModifierStateMachine", "decode_escape_spec", "to_ctrl_char"]
