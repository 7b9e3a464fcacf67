"""Clipboard read capability.

Tries the usual clipboard tools in turn. Any failure (missing tool,
denied access, timeout) yields an empty string.
"""

from __future__ import annotations

import logging
import subprocess

logger = logging.getLogger(__name__)

CLIPBOARD_COMMANDS: tuple[tuple[str, ...], ...] = (
    ("wl-paste", "--no-newline"),
    ("xclip", "-selection", "clipboard", "-o"),
    ("xsel", "--clipboard", "--output"),
    ("pbpaste",),
)


def read_clipboard(timeout: float = 2.0) -> str:
    """Return the clipboard text, or ``""`` if it cannot be read."""
    for cmd in CLIPBOARD_COMMANDS:
        try:
            result = subprocess.run(
                list(cmd),
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except (OSError, subprocess.SubprocessError):
            continue
        if result.returncode == 0:
            return result.stdout
    logger.debug("Clipboard unavailable")
    return ""
