"""JSON framing for the control channel.

One websocket per session carries UTF-8 JSON text frames, tagged by
their ``type`` field::

    {"type": "input",  "data": "<string>"}                  client -> server
    {"type": "resize", "cols": <int>, "rows": <int>}        client -> server
    {"type": "output", "data": "<string>", "encoding": ...} server -> client

There are no acknowledgements or sequence numbers. Frames that do not
parse as one of the expected shapes are dropped without closing the
connection or answering the sender.
"""

from __future__ import annotations

import base64
import binascii
import codecs
import logging
from typing import Literal, Union

from pydantic import TypeAdapter, ValidationError

from touchterm.domain.models import (
    ControlMessage,
    InputMessage,
    OutputMessage,
    ResizeMessage,
)

logger = logging.getLogger(__name__)

OutputEncoding = Literal["base64", "utf-8"]

ClientMessage = Union[InputMessage, ResizeMessage]

_MESSAGE_ADAPTER: TypeAdapter[ControlMessage] = TypeAdapter(ControlMessage)


def encode_message(message: InputMessage | ResizeMessage | OutputMessage) -> str:
    """Serialize a control message to a compact JSON text frame."""
    return message.model_dump_json()


def decode_message(raw: str | bytes) -> InputMessage | ResizeMessage | OutputMessage | None:
    """Parse a text frame into a control message.

    Returns:
        The message, or None if the frame is malformed.
    """
    try:
        return _MESSAGE_ADAPTER.validate_json(raw)
    except ValidationError as e:
        logger.debug("Dropping malformed frame (%d errors): %.80r", e.error_count(), raw)
        return None


def decode_client_message(raw: str | bytes) -> ClientMessage | None:
    """Parse a frame received by the server.

    ``output`` frames are only valid server -> client and are dropped
    like any other malformed frame.
    """
    message = decode_message(raw)
    if isinstance(message, OutputMessage):
        logger.debug("Dropping output frame sent by client")
        return None
    return message


class OutputEncoder:
    """Wraps raw process output chunks into ``output`` messages.

    In ``base64`` mode every byte survives the trip. In ``utf-8`` mode an
    incremental decoder holds back a trailing partial character until
    the next chunk completes it, so no message carries half a character.
    """

    def __init__(self, encoding: OutputEncoding = "base64") -> None:
        self._encoding = encoding
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def encoding(self) -> OutputEncoding:
        return self._encoding

    def encode(self, chunk: bytes) -> OutputMessage | None:
        """Build the message for one chunk.

        Returns:
            The message, or None when a utf-8 chunk only held the start
            of a character.
        """
        if self._encoding == "base64":
            return OutputMessage(data=base64.b64encode(chunk).decode("ascii"), encoding="base64")
        text = self._decoder.decode(chunk)
        if not text:
            return None
        return OutputMessage(data=text, encoding="utf-8")

    def flush(self) -> OutputMessage | None:
        """Emit whatever the utf-8 decoder is still holding."""
        if self._encoding == "base64":
            return None
        text = self._decoder.decode(b"", final=True)
        return OutputMessage(data=text, encoding="utf-8") if text else None


class OutputDecoder:
    """Client side of ``OutputEncoder``: message -> raw bytes or text."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @staticmethod
    def to_bytes(message: OutputMessage) -> bytes:
        """Recover the raw bytes carried by a message.

        Undecodable base64 yields an empty result.
        """
        if message.encoding == "base64":
            try:
                return base64.b64decode(message.data, validate=True)
            except (binascii.Error, ValueError):
                logger.debug("Dropping output frame with invalid base64")
                return b""
        return message.data.encode("utf-8")

    def to_text(self, message: OutputMessage) -> str:
        """Decode a message to text, buffering split characters."""
        if message.encoding == "utf-8":
            return message.data
        return self._decoder.decode(self.to_bytes(message))
