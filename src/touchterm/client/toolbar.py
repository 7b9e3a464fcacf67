"""Declarative touch toolbar.

Each button is described by data rather than code, so layouts can live
in the YAML configuration. Button kinds:

    modifier  tap arms Ctrl/Alt/Meta, double tap toggles its lock
    send      literal escape spec such as ``\\x1b`` or ``\\t``
    send_ctrl Ctrl+<char>, e.g. ^C
    key       named key routed through the composer (Alt/Meta apply)
    command   quick command, sent followed by a newline
    paste     clipboard contents
    clear     clears the local view, nothing is sent
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from touchterm.domain.models import ModifierName


class _Button(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str = Field(description="Text shown on the button")
    hotkey: str | None = Field(
        default=None,
        min_length=1,
        max_length=1,
        description="Console client: character pressed after the prefix key",
    )


class ModifierButton(_Button):
    kind: Literal["modifier"] = "modifier"
    modifier: ModifierName


class SendButton(_Button):
    kind: Literal["send"] = "send"
    send: str = Field(description=r"Escape spec, e.g. '\x1b' or '\t'")


class SendCtrlButton(_Button):
    kind: Literal["send_ctrl"] = "send_ctrl"
    char: str = Field(min_length=1, max_length=1)


class KeyButton(_Button):
    kind: Literal["key"] = "key"
    key: str = Field(description="Named key, e.g. 'ArrowUp'")


class CommandButton(_Button):
    kind: Literal["command"] = "command"
    command: str


class PasteButton(_Button):
    kind: Literal["paste"] = "paste"


class ClearButton(_Button):
    kind: Literal["clear"] = "clear"


ToolbarButton = Annotated[
    Union[
        ModifierButton,
        SendButton,
        SendCtrlButton,
        KeyButton,
        CommandButton,
        PasteButton,
        ClearButton,
    ],
    Field(discriminator="kind"),
]


def default_toolbar() -> list[ToolbarButton]:
    """The stock layout: modifiers, common control keys and arrows."""
    return [
        ModifierButton(label="Ctrl", modifier=ModifierName.CTRL, hotkey="c"),
        ModifierButton(label="Alt", modifier=ModifierName.ALT, hotkey="a"),
        ModifierButton(label="Meta", modifier=ModifierName.META, hotkey="m"),
        SendButton(label="Esc", send=r"\x1b", hotkey="e"),
        SendButton(label="Tab", send=r"\t", hotkey="t"),
        SendCtrlButton(label="^C", char="c", hotkey="x"),
        SendCtrlButton(label="^D", char="d", hotkey="d"),
        SendCtrlButton(label="^X", char="x"),
        SendCtrlButton(label="^Z", char="z", hotkey="z"),
        KeyButton(label="↑", key="ArrowUp", hotkey="k"),
        KeyButton(label="↓", key="ArrowDown", hotkey="j"),
        KeyButton(label="←", key="ArrowLeft", hotkey="h"),
        KeyButton(label="→", key="ArrowRight", hotkey="l"),
        PasteButton(label="Paste", hotkey="v"),
        ClearButton(label="Clear", hotkey="r"),
    ]
