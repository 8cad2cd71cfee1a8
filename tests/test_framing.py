from __future__ import annotations

import io
import os
import struct
import sys

import pytest


def _log():
    from native_hosts.xcloud_listener.log_context import LogContext

    trace, error = io.StringIO(), io.StringIO()
    return LogContext.from_streams(trace, error), trace, error


def test_native_byte_order_matches_interpreter() -> None:
    from native_hosts.xcloud_listener import framing

    assert framing.NATIVE_BYTE_ORDER == sys.byteorder
    assert framing.encode_length(1) == struct.pack("=I", 1)


@pytest.mark.parametrize("n", [0, 1, 255, 256, 8192, 65535, 2**24 + 3, 2**32 - 1])
def test_length_roundtrip(n: int) -> None:
    from native_hosts.xcloud_listener.framing import decode_length, encode_length

    header = encode_length(n)
    assert len(header) == 4
    assert decode_length(header) == n
    assert int.from_bytes(header, sys.byteorder) == n


def test_length_rejects_bad_input() -> None:
    from native_hosts.xcloud_listener.framing import decode_length, encode_length

    with pytest.raises(ValueError):
        decode_length(b"\x01\x00\x00")
    with pytest.raises(ValueError):
        decode_length(b"\x01\x00\x00\x00\x00")
    with pytest.raises(ValueError):
        encode_length(-1)
    with pytest.raises(ValueError):
        encode_length(2**32)


def test_read_frame_eof_on_empty_and_partial_header() -> None:
    from native_hosts.xcloud_listener.framing import read_frame

    assert read_frame(io.BytesIO(b"")) is None
    assert read_frame(io.BytesIO(b"\x02\x00")) is None


def test_write_then_read_over_pipe() -> None:
    from native_hosts.xcloud_listener.framing import read_frame, write_frame

    payloads = [b"", b'{"query":"ping"}', "{\"query\":\"été\"}".encode(), b"x" * 8192]
    r_fd, w_fd = os.pipe()
    with os.fdopen(w_fd, "wb") as w:
        for p in payloads:
            write_frame(w, p)
    with os.fdopen(r_fd, "rb") as r:
        got = [read_frame(r) for _ in payloads]
        assert read_frame(r) is None
    assert got == payloads


def test_written_prefix_matches_payload_length() -> None:
    from native_hosts.xcloud_listener.framing import write_frame

    out = io.BytesIO()
    write_frame(out, b'"pong"')
    raw = out.getvalue()
    assert int.from_bytes(raw[:4], sys.byteorder) == len(raw) - 4 == 6


def test_short_payload_at_eof_is_returned_partially() -> None:
    from native_hosts.xcloud_listener.framing import encode_length, read_frame

    stream = io.BytesIO(encode_length(10) + b"abc")
    assert read_frame(stream) == b"abc"
    assert read_frame(stream) is None


def test_oversize_truncate_leaves_remainder_in_stream() -> None:
    from native_hosts.xcloud_listener.framing import encode_length, read_frame

    log, _trace, error = _log()
    stream = io.BytesIO(encode_length(12) + b"0123456789AB")
    assert read_frame(stream, max_size=8, log=log) == b"01234567"
    assert stream.read() == b"89AB"
    assert "exceeds buffer size of 8" in error.getvalue()


def test_oversize_drain_keeps_stream_in_sync() -> None:
    from native_hosts.xcloud_listener.framing import (
        POLICY_DRAIN,
        OversizeFrameError,
        encode_length,
        read_frame,
    )

    log, _trace, error = _log()
    big = b"z" * 100_000
    stream = io.BytesIO(encode_length(len(big)) + big + encode_length(2) + b"ok")
    with pytest.raises(OversizeFrameError) as excinfo:
        read_frame(stream, max_size=16, policy=POLICY_DRAIN, log=log)
    assert excinfo.value.length == len(big)
    assert read_frame(stream, max_size=16, policy=POLICY_DRAIN, log=log) == b"ok"
    assert "discarded" in error.getvalue()


def test_read_error_is_wrapped() -> None:
    from native_hosts.xcloud_listener.framing import FrameReadError, read_frame

    class _Broken(io.RawIOBase):
        def readable(self) -> bool:
            return True

        def read(self, n: int = -1) -> bytes:
            raise OSError("boom")

    with pytest.raises(FrameReadError):
        read_frame(_Broken())


def test_write_to_closed_stream_is_wrapped() -> None:
    from native_hosts.xcloud_listener.framing import FrameWriteError, write_frame

    out = io.BytesIO()
    out.close()
    with pytest.raises(FrameWriteError):
        write_frame(out, b"{}")
