from __future__ import annotations

import io
import json

import pytest


def _log():
    from native_hosts.xcloud_listener.log_context import LogContext

    error = io.StringIO()
    return LogContext.from_streams(io.StringIO(), error), error


def test_decode_query() -> None:
    from native_hosts.xcloud_listener.messages import IncomingMessage, decode_incoming

    assert decode_incoming(b'{"query":"ping"}') == IncomingMessage("ping")
    assert decode_incoming(b'{"query":"hello","extra":1}').query == "hello"


@pytest.mark.parametrize(
    "payload",
    [b'{"qu', b"not json", b"\xff\xfe", b'["ping"]', b'"ping"', b'{"query":5}'],
)
def test_malformed_payload_degrades_to_empty_query(payload: bytes) -> None:
    from native_hosts.xcloud_listener.messages import decode_incoming

    log, error = _log()
    assert decode_incoming(payload, log=log).query == ""
    assert "Unable to decode json message" in error.getvalue()


def test_missing_query_and_null_are_not_errors() -> None:
    from native_hosts.xcloud_listener.messages import decode_incoming

    log, error = _log()
    assert decode_incoming(b"{}", log=log).query == ""
    assert decode_incoming(b"null", log=log).query == ""
    assert error.getvalue() == ""


def test_encode_sends_response_only() -> None:
    from native_hosts.xcloud_listener.messages import OutgoingMessage, encode_outgoing

    raw = encode_outgoing(OutgoingMessage(query="ping", response="pong"))
    assert raw == b'"pong"'
    assert json.loads(raw) == "pong"


def test_encode_envelope_format() -> None:
    from native_hosts.xcloud_listener.messages import WIRE_ENVELOPE, OutgoingMessage, encode_outgoing

    raw = encode_outgoing(OutgoingMessage(query="hello", response="goodbye"), wire_format=WIRE_ENVELOPE)
    assert raw is not None
    assert json.loads(raw) == {"query": "hello", "response": "goodbye"}


def test_encode_keeps_non_ascii() -> None:
    from native_hosts.xcloud_listener.messages import OutgoingMessage, encode_outgoing

    raw = encode_outgoing(OutgoingMessage(query="q", response="café"))
    assert raw == '"café"'.encode()


def test_encode_failure_returns_none() -> None:
    from native_hosts.xcloud_listener.messages import OutgoingMessage, encode_outgoing

    log, error = _log()
    # A lone surrogate cannot be encoded as UTF-8.
    assert encode_outgoing(OutgoingMessage(query="q", response="\ud800"), log=log) is None
    assert "Unable to encode outgoing message" in error.getvalue()
