"""Server-side session endpoint for touchterm.

Accepts one websocket per browser tab, spawns a pty-backed shell for it,
and relays input, output and resize frames until the connection ends.
"""
