"""Client side of touchterm.

Holds the input controller that owns sticky modifier state, the
viewport fitter, the declarative toolbar, and transports for the
control channel.

Public API:
    InputController -- Toolbar taps and key events -> channel input
    ViewportFitter -- Container pixels -> terminal cells
    TerminalTransport -- Abstract base class for channel transports
    WebSocketTransport -- WebSocket transport
"""

from touchterm.client.controller import InputController
from touchterm.client.transport import TerminalTransport, TransportError
from touchterm.client.viewport import FontMetrics, ViewportFitter

__all__ = [
    "FontMetrics",
    "InputController",
    "TerminalTransport",
    "TransportError",
    "ViewportFitter",
    "WebSocketTransport",
]


def __getattr__(name: str) -> type:
    """Lazy import for transports that require external deps."""
    if name == "WebSocketTransport":
        from touchterm.client.websocket_backend import WebSocketTransport
        return WebSocketTransport
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
