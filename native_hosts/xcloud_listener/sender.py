from __future__ import annotations

import threading
from typing import TYPE_CHECKING, BinaryIO

from .framing import FrameWriteError, write_frame
from .messages import WIRE_RESPONSE, OutgoingMessage, encode_outgoing

if TYPE_CHECKING:
    from .log_context import LogContext


class MessageSender:
    """Single writer for the native messaging output stream.

    The stdio loop and HTTP request threads all send through one instance;
    the lock keeps each frame's header and payload contiguous on the wire.
    """

    def __init__(self, stream: BinaryIO, *, log: LogContext, wire_format: str = WIRE_RESPONSE) -> None:
        self._stream = stream
        self._log = log
        self._wire_format = wire_format
        self._write_lock = threading.Lock()
        self.sent = 0

    def send(self, msg: OutgoingMessage) -> bool:
        payload = encode_outgoing(msg, wire_format=self._wire_format, log=self._log)
        if payload is None:
            return False
        with self._write_lock:
            try:
                write_frame(self._stream, payload)
            except FrameWriteError as exc:
                self._log.error.error("Unable to write message to Stdout: %s", exc)
                return False
            self.sent += 1
        self._log.trace.info("Message sent: query=%r response=%r (%d bytes)", msg.query, msg.response, len(payload))
        return True


__all__ = ["MessageSender"]
