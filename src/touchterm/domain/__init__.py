"""Domain models for touchterm.

This package contains the core data structures and enumerations shared
by the client and server halves. All models use Pydantic v2 for
validation and serialization.
"""

from touchterm.domain.models import (
    DEFAULT_GEOMETRY,
    ControlMessage,
    InputMessage,
    KeyEvent,
    ModifierName,
    ModifierPhase,
    ModifierState,
    OutputMessage,
    ResizeMessage,
    TerminalGeometry,
)

__all__ = [
    "DEFAULT_GEOMETRY",
    "ControlMessage",
    "InputMessage",
    "KeyEvent",
    "ModifierName",
    "ModifierPhase",
    "ModifierState",
    "OutputMessage",
    "ResizeMessage",
    "TerminalGeometry",
]
