from __future__ import annotations

import enum
from typing import TYPE_CHECKING, BinaryIO

from .framing import (
    DEFAULT_MAX_FRAME_BYTES,
    POLICY_TRUNCATE,
    FrameReadError,
    OversizeFrameError,
    read_header,
    read_payload,
)
from .messages import decode_incoming
from .routing import build_reply

if TYPE_CHECKING:
    from .log_context import LogContext
    from .sender import MessageSender


class LoopState(enum.Enum):
    WAITING_FOR_HEADER = "waiting_for_header"
    READING_PAYLOAD = "reading_payload"
    DISPATCHING = "dispatching"
    CLOSED = "closed"


class StdioLoop:
    """Blocking read/dispatch loop over the extension's stdin.

    Each frame is decoded, mapped to a reply and written back through the
    shared sender. The loop ends when stdin closes; transport errors
    propagate as FrameReadError.
    """

    def __init__(
        self,
        stream: BinaryIO,
        sender: MessageSender,
        *,
        log: LogContext,
        max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES,
        oversize_policy: str = POLICY_TRUNCATE,
    ) -> None:
        self._stream = stream
        self._sender = sender
        self._log = log
        self.max_frame_bytes = int(max_frame_bytes)
        self.oversize_policy = oversize_policy
        self.state = LoopState.WAITING_FOR_HEADER
        self.handled = 0

    def handle_payload(self, payload: bytes) -> bool:
        self.state = LoopState.DISPATCHING
        incoming = decode_incoming(payload, log=self._log)
        self._log.trace.info("Message received: %s", payload.decode("utf-8", errors="replace"))
        ok = self._sender.send(build_reply(incoming))
        self.handled += 1
        return ok

    def _step(self) -> bool:
        self.state = LoopState.WAITING_FOR_HEADER
        length = read_header(self._stream)
        if length is None:
            return False
        self._log.trace.info("Message size in bytes: %d", length)

        self.state = LoopState.READING_PAYLOAD
        try:
            payload = read_payload(
                self._stream,
                length,
                max_size=self.max_frame_bytes,
                policy=self.oversize_policy,
                log=self._log,
            )
        except OversizeFrameError as exc:
            self._log.trace.info("Skipped message: %s", exc)
            return True

        self.handle_payload(payload)
        return True

    def run(self) -> int:
        """Process frames until stdin closes. Returns the number of messages handled."""
        self._log.trace.info(
            "Reading stdin (max frame %d bytes, oversize policy %s).", self.max_frame_bytes, self.oversize_policy
        )
        try:
            while self._step():
                pass
        except FrameReadError as exc:
            self._log.error.error("Unable to read from Stdin: %s", exc)
            raise
        finally:
            self.state = LoopState.CLOSED
        self._log.trace.info("Stdin closed.")
        return self.handled


__all__ = ["LoopState", "StdioLoop"]
