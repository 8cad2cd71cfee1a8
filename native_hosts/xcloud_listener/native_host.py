"""Chrome Native Messaging host for the Xcloud extension.

Chrome launches this process when the extension calls `connectNative()`.

- Extension <-> host: Chrome Native Messaging (length-prefixed JSON on stdin/stdout)
- Local tools -> host: HTTP `POST /action` pushes a message to the extension

`install` registers the host manifest with the local browsers instead.
"""

from __future__ import annotations

import argparse
import logging
import sys

from .config import ListenerConfig
from .host import ListenerHost
from .log_context import LogContext
from .native_host_installer import install_native_host


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="xcloud-listener", description="Xcloud extension native messaging host")
    sub = parser.add_subparsers(dest="command")
    install = sub.add_parser("install", help="register the native host manifest with local browsers")
    install.add_argument(
        "--extension-id",
        action="append",
        default=[],
        dest="extension_ids",
        help="extension id allowed to connect (repeatable)",
    )
    return parser


def _install(extension_ids: list[str]) -> int:
    # Interactive command: plain stderr logging is fine here, stdout is not a frame channel.
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    report = install_native_host(extension_ids)
    for line in report.wrote:
        print(f"wrote {line}")
    for err in report.errors:
        print(f"error: {err}", file=sys.stderr)
    return 0 if report.ok else 1


def run_host(config: ListenerConfig | None = None) -> int:
    config = config or ListenerConfig.from_env()
    with LogContext.open(config.log_path) as log:
        host = ListenerHost(config, log, sys.stdin.buffer, sys.stdout.buffer)
        return host.run()


def main(argv: list[str] | None = None) -> None:
    # Chrome passes the caller origin (and on Windows a window handle) as arguments.
    args_in = list(sys.argv[1:] if argv is None else argv)
    if args_in and args_in[0] == "install":
        args = _build_parser().parse_args(args_in)
        raise SystemExit(_install(args.extension_ids))
    try:
        raise SystemExit(run_host())
    except KeyboardInterrupt:
        raise SystemExit(0) from None


if __name__ == "__main__":
    main()
