from __future__ import annotations

from typing import TYPE_CHECKING, BinaryIO

from .framing import NATIVE_BYTE_ORDER, FrameReadError
from .http_trigger import HttpTrigger
from .sender import MessageSender
from .stdio_loop import StdioLoop

if TYPE_CHECKING:
    from .config import ListenerConfig
    from .log_context import LogContext

EXIT_OK = 0
EXIT_TRANSPORT_ERROR = 1
EXIT_HTTP_BIND_FAILED = 2


class ListenerHost:
    """Wires the stdio loop and the HTTP trigger around one shared sender.

    The two entry points run independently; the host lives until stdin
    closes, then stops the HTTP listener.
    """

    def __init__(self, config: ListenerConfig, log: LogContext, stdin: BinaryIO, stdout: BinaryIO) -> None:
        self.config = config
        self.log = log
        self.sender = MessageSender(stdout, log=log, wire_format=config.wire_format)
        self.loop = StdioLoop(
            stdin,
            self.sender,
            log=log,
            max_frame_bytes=config.max_frame_bytes,
            oversize_policy=config.oversize_policy,
        )
        self.http: HttpTrigger | None = None
        if config.http_enabled:
            self.http = HttpTrigger(self.sender, log=log, host=config.http_host, port=config.http_port)

    def run(self) -> int:
        self.log.trace.info("Chrome native messaging host started. Native byte order: %s.", NATIVE_BYTE_ORDER)
        if self.http is not None:
            try:
                self.http.start()
            except RuntimeError as exc:
                self.log.error.error("%s", exc)
                return EXIT_HTTP_BIND_FAILED
        try:
            self.loop.run()
        except FrameReadError:
            return EXIT_TRANSPORT_ERROR
        finally:
            if self.http is not None:
                self.http.stop()
            self.log.trace.info("Chrome native messaging host exited.")
        return EXIT_OK


__all__ = ["EXIT_HTTP_BIND_FAILED", "EXIT_OK", "EXIT_TRANSPORT_ERROR", "ListenerHost"]
