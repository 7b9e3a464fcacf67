"""Control channel protocol shared by the client and the server."""

from touchterm.protocol.channel import (
    OutputDecoder,
    OutputEncoder,
    decode_client_message,
    decode_message,
    encode_message,
)

__all__ = [
    "OutputDecoder",
    "OutputEncoder",
    "decode_client_message",
    "decode_message",
    "encode_message",
]
