from __future__ import annotations

from .messages import IncomingMessage, OutgoingMessage

QUERY_RESPONSES: dict[str, str] = {
    "ping": "pong",
    "hello": "goodbye",
}
DEFAULT_RESPONSE = "42"


def respond_to(query: str) -> str:
    return QUERY_RESPONSES.get(query, DEFAULT_RESPONSE)


def build_reply(incoming: IncomingMessage) -> OutgoingMessage:
    """Reply for a query received over stdio."""
    return OutgoingMessage(query=incoming.query, response=respond_to(incoming.query))


def build_echo(action: str) -> OutgoingMessage | None:
    """Message pushed by the HTTP trigger: the action is echoed back unmapped."""
    if not action:
        return None
    return OutgoingMessage(query=action, response=action)


__all__ = ["DEFAULT_RESPONSE", "QUERY_RESPONSES", "build_echo", "build_reply", "respond_to"]
