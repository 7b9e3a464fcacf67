"""Sticky modifier state machine.

Touch keyboards have no physical Ctrl/Alt/Meta keys, so the toolbar
emulates them. Each modifier is independently Idle, Armed (applies to
the next key only) or Locked (applies until unlocked):

    tap         Idle -> Armed (Armed stays Armed, Locked is untouched)
    double tap  toggles the lock; locking also arms the modifier
    dispatch    every unlocked modifier goes back to Idle
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from touchterm.domain.models import ModifierName, ModifierPhase, ModifierState

logger = logging.getLogger(__name__)

ModifierListener = Callable[[ModifierName, ModifierPhase], None]

DEFAULT_MODIFIERS: tuple[ModifierName, ...] = (
    ModifierName.CTRL,
    ModifierName.ALT,
    ModifierName.META,
)


class ModifierStateMachine:
    """Holds the sticky state of every toolbar modifier.

    One instance is created per client and shared by every key source
    that feeds the same connection. Listeners are notified with the new
    phase after each transition so a UI can refresh its buttons.

    Args:
        modifiers: Modifier names this client exposes.
        reset_active_on_unlock: When True, turning a lock off also
            clears ``active``. By default ``active`` is left as it was,
            so an unlocked modifier still applies to one more key.
    """

    def __init__(
        self,
        modifiers: Iterable[ModifierName | str] = DEFAULT_MODIFIERS,
        reset_active_on_unlock: bool = False,
    ) -> None:
        self._states: dict[ModifierName, ModifierState] = {
            ModifierName(name): ModifierState() for name in modifiers
        }
        self._reset_active_on_unlock = reset_active_on_unlock
        self._listeners: list[ModifierListener] = []

    @property
    def names(self) -> tuple[ModifierName, ...]:
        return tuple(self._states)

    def state(self, name: ModifierName | str) -> ModifierState:
        """Return the live state object for a modifier.

        Raises:
            KeyError: If the modifier is not exposed by this client.
        """
        return self._states[ModifierName(name)]

    def phase(self, name: ModifierName | str) -> ModifierPhase:
        return self.state(name).phase

    def is_effective(self, name: ModifierName | str) -> bool:
        """Whether the modifier applies to the next key (active or locked).

        Modifiers this client does not expose are never effective.
        """
        try:
            return self.state(name).effective
        except (KeyError, ValueError):
            return False

    def effective(self) -> frozenset[ModifierName]:
        """Names of all modifiers that apply to the next key."""
        return frozenset(name for name, st in self._states.items() if st.effective)

    def add_listener(self, listener: ModifierListener) -> None:
        self._listeners.append(listener)

    # -----------------------------------------------------------------
    # Transitions
    # -----------------------------------------------------------------

    def activate(self, name: ModifierName | str) -> ModifierPhase:
        """Single tap: arm the modifier for the next key."""
        st = self.state(name)
        if not st.locked:
            st.active = True
        self._notify(ModifierName(name))
        return st.phase

    def toggle_lock(self, name: ModifierName | str) -> ModifierPhase:
        """Double tap: toggle the persistent lock."""
        st = self.state(name)
        st.locked = not st.locked
        if st.locked:
            st.active = True
        elif self._reset_active_on_unlock:
            st.active = False
        logger.debug("Modifier %s lock %s", ModifierName(name).value, "on" if st.locked else "off")
        self._notify(ModifierName(name))
        return st.phase

    def reset_after_dispatch(self) -> None:
        """Clear single-use arming after a key was dispatched.

        Locked modifiers are untouched.
        """
        for name, st in self._states.items():
            if not st.locked:
                st.active = False
            self._notify(name)

    def snapshot(self) -> dict[str, ModifierPhase]:
        """Current phase of every modifier, keyed by name."""
        return {name.value: st.phase for name, st in self._states.items()}

    def _notify(self, name: ModifierName) -> None:
        phase = self._states[name].phase
        for listener in self._listeners:
            listener(name, phase)
