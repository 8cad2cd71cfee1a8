from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .log_context import LogContext

WIRE_RESPONSE = "response"
WIRE_ENVELOPE = "envelope"
WIRE_FORMATS = (WIRE_RESPONSE, WIRE_ENVELOPE)


@dataclass(frozen=True, slots=True)
class IncomingMessage:
    """A message sent to the native host by the extension."""

    query: str = ""


@dataclass(frozen=True, slots=True)
class OutgoingMessage:
    """A response to an incoming query (or an HTTP-triggered push)."""

    query: str
    response: str


def _dumps(value: object) -> bytes:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def decode_incoming(payload: bytes, log: LogContext | None = None) -> IncomingMessage:
    """Decode a frame payload into an IncomingMessage.

    Never raises: anything that is not a JSON object with a string `query`
    is logged and treated as an empty query.
    """
    try:
        data = json.loads(payload.decode("utf-8"))
    except ValueError as exc:
        # UnicodeDecodeError and JSONDecodeError are both ValueError.
        if log is not None:
            log.error.error("Unable to decode json message: %s", exc)
        return IncomingMessage()

    if data is None:
        return IncomingMessage()
    if not isinstance(data, dict):
        if log is not None:
            log.error.error("Unable to decode json message: expected object, got %s", type(data).__name__)
        return IncomingMessage()

    query = data.get("query")
    if query is None:
        return IncomingMessage()
    if not isinstance(query, str):
        if log is not None:
            log.error.error("Unable to decode json message: query must be a string, got %s", type(query).__name__)
        return IncomingMessage()
    return IncomingMessage(query=query)


def encode_outgoing(
    msg: OutgoingMessage,
    *,
    wire_format: str = WIRE_RESPONSE,
    log: LogContext | None = None,
) -> bytes | None:
    """Serialize an OutgoingMessage for the stdio channel.

    The `response` wire format sends only the JSON-encoded response string,
    which is what the extension expects. `envelope` sends the full object.
    Returns None when encoding fails.
    """
    value: object = asdict(msg) if wire_format == WIRE_ENVELOPE else msg.response
    try:
        return _dumps(value)
    except (TypeError, ValueError) as exc:
        if log is not None:
            log.error.error("Unable to encode outgoing message: %s", exc)
        return None


__all__ = [
    "WIRE_ENVELOPE",
    "WIRE_FORMATS",
    "WIRE_RESPONSE",
    "IncomingMessage",
    "OutgoingMessage",
    "decode_incoming",
    "encode_outgoing",
]
