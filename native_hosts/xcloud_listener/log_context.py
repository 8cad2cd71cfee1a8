"""Logging context shared by the listener components.

The context is built once at process start and passed to each component.
Two loggers mirror the host's log channels: `trace` for informational lines
and `error` for failures.

When the log file cannot be opened both channels fall back to stderr. stdout
is not a fallback: it carries the native messaging frames, and a log line
there would be read by the browser as a length header and break framing.
"""

from __future__ import annotations

import itertools
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

DEFAULT_LOG_FILE = "xcloudListener.log"
_LOGGER_PREFIX = "xcloud.listener"
_FORMAT = "%(channel)s: %(asctime)s %(filename)s:%(lineno)d: %(message)s"
_DATEFMT = "%Y/%m/%d %H:%M:%S"

# Logger names are per context so two contexts never share handlers.
_ids = itertools.count(1)


class _ChannelFilter(logging.Filter):
    def __init__(self, channel: str) -> None:
        super().__init__()
        self.channel = channel

    def filter(self, record: logging.LogRecord) -> bool:
        record.channel = self.channel
        return True


def _make_logger(channel: str, handler: logging.Handler, ctx_id: int) -> logging.Logger:
    logger = logging.getLogger(f"{_LOGGER_PREFIX}.{ctx_id}.{channel.lower()}")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    logger.addFilter(_ChannelFilter(channel))
    logger.addHandler(handler)
    return logger


def _prepare(handler: logging.Handler) -> logging.Handler:
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
    return handler


@dataclass
class LogContext:
    trace: logging.Logger
    error: logging.Logger
    path: Path | None = None
    fallback_reason: str | None = None
    _handlers: list[logging.Handler] = field(default_factory=list, repr=False)

    @classmethod
    def _build(cls, trace_handler: logging.Handler, error_handler: logging.Handler, **kwargs) -> LogContext:
        ctx_id = next(_ids)
        handlers = [trace_handler] if trace_handler is error_handler else [trace_handler, error_handler]
        return cls(
            trace=_make_logger("TRACE", trace_handler, ctx_id),
            error=_make_logger("ERROR", error_handler, ctx_id),
            _handlers=handlers,
            **kwargs,
        )

    @classmethod
    def from_streams(cls, trace_stream: TextIO, error_stream: TextIO) -> LogContext:
        if trace_stream is error_stream:
            handler = _prepare(logging.StreamHandler(trace_stream))
            return cls._build(handler, handler)
        return cls._build(
            _prepare(logging.StreamHandler(trace_stream)),
            _prepare(logging.StreamHandler(error_stream)),
        )

    @classmethod
    def open(cls, path: str | Path = DEFAULT_LOG_FILE) -> LogContext:
        """Append to `path`; fall back to stderr when the file cannot be opened."""
        log_path = Path(path)
        try:
            handler = _prepare(logging.FileHandler(log_path, mode="a", encoding="utf-8"))
        except OSError as exc:
            ctx = cls.from_streams(sys.stderr, sys.stderr)
            ctx.fallback_reason = str(exc)
            ctx.error.error("Unable to create and/or open log file. Will log to Stderr. Error: %s", exc)
            return ctx
        return cls._build(handler, handler, path=log_path)

    def close(self) -> None:
        """Flush and detach all handlers. Streams passed in by the caller stay open."""
        for logger in (self.trace, self.error):
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
        for handler in self._handlers:
            handler.flush()
            handler.close()
        self._handlers.clear()

    def __enter__(self) -> LogContext:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = ["DEFAULT_LOG_FILE", "LogContext"]
