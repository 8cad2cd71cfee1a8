"""Chrome Native Messaging framing (length-prefixed payloads over a byte stream).

Every frame is a 4-byte unsigned length in the process's native byte order
followed by that many bytes of JSON. The browser is trusted to use the same
byte order as this process; there is no negotiation.
"""

from __future__ import annotations

import struct
import sys
from typing import TYPE_CHECKING, BinaryIO

if TYPE_CHECKING:
    from .log_context import LogContext

NATIVE_BYTE_ORDER: str = sys.byteorder
HEADER_SIZE = 4
DEFAULT_MAX_FRAME_BYTES = 8192
MAX_LENGTH = 0xFFFFFFFF

POLICY_TRUNCATE = "truncate"
POLICY_DRAIN = "drain"
OVERSIZE_POLICIES = (POLICY_TRUNCATE, POLICY_DRAIN)

_LENGTH = struct.Struct("<I" if NATIVE_BYTE_ORDER == "little" else ">I")
_DRAIN_CHUNK = 64 * 1024


class FramingError(Exception):
    """Base class for framing failures."""


class FrameReadError(FramingError):
    """Transport failure while reading from the input stream."""


class FrameWriteError(FramingError):
    """Transport failure while writing a frame."""


class OversizeFrameError(FramingError):
    """A frame larger than the limit was drained and skipped."""

    def __init__(self, length: int, max_size: int) -> None:
        super().__init__(f"frame of {length} bytes exceeds limit of {max_size} bytes (discarded)")
        self.length = length
        self.max_size = max_size


def decode_length(header: bytes) -> int:
    if len(header) != HEADER_SIZE:
        raise ValueError(f"length header must be {HEADER_SIZE} bytes, got {len(header)}")
    (length,) = _LENGTH.unpack(header)
    return int(length)


def encode_length(length: int) -> bytes:
    if length < 0 or length > MAX_LENGTH:
        raise ValueError(f"frame length out of range: {length}")
    return _LENGTH.pack(length)


def _read_upto(stream: BinaryIO, n: int) -> bytes:
    """Read up to `n` bytes, stopping early only when the stream ends."""
    buf = bytearray()
    while len(buf) < n:
        try:
            chunk = stream.read(n - len(buf))
        except OSError as exc:
            raise FrameReadError(str(exc)) from exc
        if not chunk:
            break
        buf.extend(chunk)
    return bytes(buf)


def _discard(stream: BinaryIO, n: int) -> int:
    dropped = 0
    while dropped < n:
        chunk = _read_upto(stream, min(_DRAIN_CHUNK, n - dropped))
        if not chunk:
            break
        dropped += len(chunk)
    return dropped


def read_header(stream: BinaryIO) -> int | None:
    """Read one length header. Returns None once the stream is exhausted."""
    header = _read_upto(stream, HEADER_SIZE)
    if len(header) < HEADER_SIZE:
        return None
    return decode_length(header)


def read_payload(
    stream: BinaryIO,
    length: int,
    *,
    max_size: int = DEFAULT_MAX_FRAME_BYTES,
    policy: str = POLICY_TRUNCATE,
    log: LogContext | None = None,
) -> bytes:
    """Read the payload announced by a header.

    With the `truncate` policy an oversize frame is cut to `max_size` bytes and
    the rest of it stays in the stream, so the next header read is misaligned.
    With `drain` the whole payload is consumed and `OversizeFrameError` raised.
    """
    if length <= max_size:
        return _read_upto(stream, length)

    if policy == POLICY_DRAIN:
        if log is not None:
            log.error.error(
                "Message size of %d exceeds buffer size of %d. Message will be discarded.", length, max_size
            )
        _discard(stream, length)
        raise OversizeFrameError(length, max_size)

    if log is not None:
        log.error.error(
            "Message size of %d exceeds buffer size of %d. Message will be truncated and is unlikely to decode as JSON.",
            length,
            max_size,
        )
    return _read_upto(stream, max_size)


def read_frame(
    stream: BinaryIO,
    max_size: int = DEFAULT_MAX_FRAME_BYTES,
    policy: str = POLICY_TRUNCATE,
    log: LogContext | None = None,
) -> bytes | None:
    length = read_header(stream)
    if length is None:
        return None
    return read_payload(stream, length, max_size=max_size, policy=policy, log=log)


def write_frame(stream: BinaryIO, payload: bytes) -> None:
    """Write header and payload as a single write, then flush."""
    data = encode_length(len(payload)) + payload
    try:
        stream.write(data)
        stream.flush()
    except (OSError, ValueError) as exc:
        # ValueError: write to a closed file.
        raise FrameWriteError(str(exc)) from exc


__all__ = [
    "DEFAULT_MAX_FRAME_BYTES",
    "HEADER_SIZE",
    "NATIVE_BYTE_ORDER",
    "OVERSIZE_POLICIES",
    "POLICY_DRAIN",
    "POLICY_TRUNCATE",
    "FrameReadError",
    "FrameWriteError",
    "FramingError",
    "OversizeFrameError",
    "decode_length",
    "encode_length",
    "read_frame",
    "read_header",
    "read_payload",
    "write_frame",
]
