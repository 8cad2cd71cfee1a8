from __future__ import annotations

import os
from dataclasses import dataclass

from .framing import DEFAULT_MAX_FRAME_BYTES, OVERSIZE_POLICIES, POLICY_TRUNCATE
from .http_trigger import DEFAULT_HTTP_HOST, DEFAULT_HTTP_PORT
from .log_context import DEFAULT_LOG_FILE
from .messages import WIRE_FORMATS, WIRE_RESPONSE

_MAX_PORT = 65535


def _env_int(name: str, default: int, *, minimum: int = 0, maximum: int | None = None) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    if value < minimum or (maximum is not None and value > maximum):
        return default
    return value


def _env_flag(name: str, default: bool) -> bool:
    raw = (os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw not in {"0", "false", "no", "off"}


@dataclass
class ListenerConfig:
    max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES
    http_host: str = DEFAULT_HTTP_HOST
    http_port: int = DEFAULT_HTTP_PORT
    http_enabled: bool = True
    log_path: str = DEFAULT_LOG_FILE
    oversize_policy: str = POLICY_TRUNCATE
    wire_format: str = WIRE_RESPONSE

    @staticmethod
    def normalize_policy(raw: str | None) -> str:
        policy = (raw or "").strip().lower()
        if policy in {"drain", "skip", "discard"}:
            return "drain"
        if policy in OVERSIZE_POLICIES:
            return policy
        return POLICY_TRUNCATE

    @staticmethod
    def normalize_wire_format(raw: str | None) -> str:
        fmt = (raw or "").strip().lower()
        if fmt in {"envelope", "full", "object"}:
            return "envelope"
        if fmt in WIRE_FORMATS:
            return fmt
        return WIRE_RESPONSE

    @classmethod
    def from_env(cls) -> ListenerConfig:
        return cls(
            max_frame_bytes=_env_int("XCLOUD_BUFFER_SIZE", DEFAULT_MAX_FRAME_BYTES, minimum=1),
            http_host=os.environ.get("XCLOUD_HTTP_HOST", DEFAULT_HTTP_HOST).strip(),
            http_port=_env_int("XCLOUD_HTTP_PORT", DEFAULT_HTTP_PORT, maximum=_MAX_PORT),
            http_enabled=_env_flag("XCLOUD_HTTP_ENABLED", True),
            log_path=os.path.expanduser(os.environ.get("XCLOUD_LOG_PATH") or DEFAULT_LOG_FILE),
            oversize_policy=cls.normalize_policy(os.environ.get("XCLOUD_OVERSIZE_POLICY")),
            wire_format=cls.normalize_wire_format(os.environ.get("XCLOUD_WIRE_FORMAT")),
        )


__all__ = ["ListenerConfig"]
