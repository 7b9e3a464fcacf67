"""touchterm -- Remote terminal with sticky touch modifiers.

A browser-style client renders a terminal and a touch toolbar whose
Ctrl/Alt/Meta buttons stay "sticky" (armed for one key, or locked). Key
events are composed into the control bytes a shell expects and sent over
a small JSON protocol to a server that runs one pty-backed shell per
connection.
"""

__version__ = "0.1.0"
