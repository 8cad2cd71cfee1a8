"""HTTP trigger for pushing messages to the extension out of band.

`/action` takes the raw request body as an action string and sends it to the
extension as an echo message through the same writer as the stdio loop.
Every other path answers with a fixed acknowledgement.
"""

from __future__ import annotations

import contextlib
import threading
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import TYPE_CHECKING

from .routing import build_echo

if TYPE_CHECKING:
    from .log_context import LogContext
    from .sender import MessageSender

DEFAULT_HTTP_HOST = ""
DEFAULT_HTTP_PORT = 9000
HOME_BODY = b"Home Endpoint hit"
ACTION_PATH = "/action"
_READ_CHUNK = 64 * 1024


class _TriggerServer(ThreadingHTTPServer):
    daemon_threads = True
    allow_reuse_port = False

    def __init__(self, address: tuple[str, int], trigger: HttpTrigger) -> None:
        self.trigger = trigger
        super().__init__(address, _TriggerHandler)

    def handle_error(self, request, client_address) -> None:
        # Default implementation prints a traceback to stderr.
        self.trigger.log.error.error("HTTP request from %s failed", client_address, exc_info=True)


class _TriggerHandler(BaseHTTPRequestHandler):
    server: _TriggerServer
    server_version = "xcloud-listener"

    def _route(self) -> None:
        path = self.path.split("?", 1)[0]
        if path == ACTION_PATH:
            self._action()
        else:
            self._home()

    def __getattr__(self, name: str):
        # Every method not defined here is routed by path; HEAD is answered without a body.
        if name.startswith("do_"):
            return self._route
        raise AttributeError(name)

    def do_HEAD(self) -> None:
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(HOME_BODY)))
        self.end_headers()

    def _home(self) -> None:
        self.server.trigger.log.trace.info("Endpoint hit: homeEndpoint")
        self._reply(HOME_BODY)

    def _action(self) -> None:
        trigger = self.server.trigger
        try:
            body = self._read_body()
        except (OSError, ValueError) as exc:
            trigger.log.trace.info("Error reading action body: %s", exc)
            self.close_connection = True
            self._reply(b"")
            return
        # The caller gets an empty 200 whatever the outcome of the send.
        trigger.perform_action(body.decode("utf-8", errors="replace"))
        self._reply(b"")

    def _read_exact(self, n: int) -> bytes:
        """Read `n` body bytes in bounded chunks; the declared size is never preallocated."""
        buf = bytearray()
        while len(buf) < n:
            chunk = self.rfile.read(min(_READ_CHUNK, n - len(buf)))
            if not chunk:
                raise OSError(f"unexpected EOF after {len(buf)} of {n} body bytes")
            buf.extend(chunk)
        return bytes(buf)

    def _read_body(self) -> bytes:
        if "chunked" in (self.headers.get("Transfer-Encoding") or "").lower():
            return self._read_chunked()
        raw_length = self.headers.get("Content-Length")
        if not raw_length:
            return b""
        length = int(raw_length)
        if length < 0:
            raise ValueError(f"invalid Content-Length: {raw_length}")
        return self._read_exact(length)

    def _read_chunked(self) -> bytes:
        buf = bytearray()
        while True:
            size_line = self.rfile.readline(1024)
            if not size_line:
                raise OSError("unexpected EOF in chunked body")
            size = int(size_line.split(b";", 1)[0].strip(), 16)
            if size == 0:
                # Trailer section ends with an empty line.
                while self.rfile.readline(1024) not in (b"\r\n", b"\n", b""):
                    pass
                return bytes(buf)
            buf.extend(self._read_exact(size))
            self.rfile.readline(1024)

    def _reply(self, body: bytes) -> None:
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if body:
            self.wfile.write(body)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        # Default implementation writes to stderr; keep access lines in the trace log.
        self.server.trigger.log.trace.info("http %s - %s", self.address_string(), format % args)


class HttpTrigger:
    """Threaded HTTP listener that funnels actions into the shared sender."""

    def __init__(
        self,
        sender: MessageSender,
        *,
        log: LogContext,
        host: str = DEFAULT_HTTP_HOST,
        port: int = DEFAULT_HTTP_PORT,
    ) -> None:
        self.sender = sender
        self.log = log
        self.host = host
        self.port = int(port)
        self._server: _TriggerServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def address(self) -> tuple[str, int] | None:
        server = self._server
        if server is None:
            return None
        host, port = server.server_address[:2]
        return str(host), int(port)

    def perform_action(self, action: str) -> bool:
        msg = build_echo(action)
        if msg is None:
            self.log.trace.info("Action string is empty")
            return False
        self.log.trace.info("Performing action: %s", action)
        ok = self.sender.send(msg)
        self.log.trace.info("Message query: %s", msg.query)
        self.log.trace.info("Message response: %s", msg.response)
        return ok

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        try:
            server = _TriggerServer((self.host, self.port), self)
        except (OSError, OverflowError) as exc:
            raise RuntimeError(f"HTTP trigger bind failed on {self.host or '*'}:{self.port}: {exc}") from exc
        self._server = server
        t = threading.Thread(target=server.serve_forever, name="xcloud-http-trigger", daemon=True)
        self._thread = t
        t.start()
        host, port = self.address or (self.host, self.port)
        self.log.trace.info("HTTP trigger listening on %s:%d", host or "*", port)

    def stop(self, *, timeout: float = 2.0) -> None:
        server = self._server
        if server is None:
            return
        with contextlib.suppress(Exception):
            server.shutdown()
        server.server_close()
        t = self._thread
        if t is not None:
            t.join(timeout=timeout)
        self._server = None
        self._thread = None
        self.log.trace.info("HTTP trigger stopped")


__all__ = ["ACTION_PATH", "DEFAULT_HTTP_HOST", "DEFAULT_HTTP_PORT", "HOME_BODY", "HttpTrigger"]
