"""Core domain models for the touchterm system.

These models represent the data flowing between the pieces of the
system: sticky modifier state on the client, raw key events coming
from the terminal widget, terminal geometry, and the control messages
exchanged over the channel between client and server.
"""

from __future__ import annotations

import enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ModifierName(str, enum.Enum):
    """Modifiers the touch toolbar can hold on behalf of the user."""

    CTRL = "ctrl"
    ALT = "alt"
    META = "meta"


class ModifierPhase(str, enum.Enum):
    """Effective state of a single sticky modifier."""

    IDLE = "idle"  # Not applied to the next key
    ARMED = "armed"  # Applied to the next key only
    LOCKED = "locked"  # Applied to every key until unlocked


# Modifiers whose effect is an ESC prefix ("Alt as Meta")
META_CLASS_MODIFIERS: tuple[ModifierName, ...] = (ModifierName.ALT, ModifierName.META)


# ---------------------------------------------------------------------------
# Client-side key models
# ---------------------------------------------------------------------------


class ModifierState(BaseModel):
    """Sticky state of one modifier.

    ``active`` arms the modifier for a single key; ``locked`` keeps it
    applied until the lock is toggled off. Locking forces ``active`` on,
    but unlocking does not clear it.
    """

    active: bool = False
    locked: bool = False

    @property
    def effective(self) -> bool:
        """Whether the modifier applies to the next composed key."""
        return self.active or self.locked

    @property
    def phase(self) -> ModifierPhase:
        if self.locked:
            return ModifierPhase.LOCKED
        if self.active:
            return ModifierPhase.ARMED
        return ModifierPhase.IDLE


class KeyEvent(BaseModel):
    """A raw key event as reported by the terminal widget.

    Printable events carry the single character typed; non-printable
    events carry a key name such as ``ArrowUp`` or ``Enter``.
    """

    model_config = ConfigDict(frozen=True)

    key: str = Field(description="Printable character or named key (e.g. 'a', 'ArrowUp')")
    printable: bool = Field(description="True when key is a single printable character")

    @classmethod
    def from_key(cls, key: str) -> KeyEvent:
        """Build an event using the DOM rule: one character means printable."""
        return cls(key=key, printable=len(key) == 1)


class TerminalGeometry(BaseModel):
    """Terminal size in character cells."""

    model_config = ConfigDict(frozen=True)

    cols: int = Field(gt=0, description="Number of columns")
    rows: int = Field(gt=0, description="Number of rows")


DEFAULT_GEOMETRY = TerminalGeometry(cols=80, rows=24)


# ---------------------------------------------------------------------------
# Control channel messages (discriminated union)
# ---------------------------------------------------------------------------


class InputMessage(BaseModel):
    """Client -> server: composed bytes to feed to the shell."""

    model_config = ConfigDict(frozen=True)

    type: Literal["input"] = "input"
    data: str = Field(description="Composed key sequence or pasted text")


class ResizeMessage(BaseModel):
    """Client -> server: new terminal geometry."""

    model_config = ConfigDict(frozen=True)

    type: Literal["resize"] = "resize"
    cols: int = Field(gt=0, strict=True)
    rows: int = Field(gt=0, strict=True)

    @property
    def geometry(self) -> TerminalGeometry:
        return TerminalGeometry(cols=self.cols, rows=self.rows)


class OutputMessage(BaseModel):
    """Server -> client: one chunk of shell output.

    ``encoding`` tells the client how ``data`` is encoded. Messages
    without it are plain text.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["output"] = "output"
    data: str = Field(description="Output chunk, encoded per `encoding`")
    encoding: Literal["base64", "utf-8"] = "utf-8"


ControlMessage = Annotated[
    Union[InputMessage, ResizeMessage, OutputMessage],
    Field(discriminator="type"),
]
