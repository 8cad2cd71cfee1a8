#!/usr/bin/env python3
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

# stderr only: stdout is the native messaging channel.
print(
    f"[xcloud] log={os.environ.get('XCLOUD_LOG_PATH', 'xcloudListener.log')} | "
    f"http={os.environ.get('XCLOUD_HTTP_HOST', '*') or '*'}:{os.environ.get('XCLOUD_HTTP_PORT', '9000')} | "
    f"buffer={os.environ.get('XCLOUD_BUFFER_SIZE', '8192')} | "
    f"oversize={os.environ.get('XCLOUD_OVERSIZE_POLICY', 'truncate')}",
    file=sys.stderr,
)

from native_hosts.xcloud_listener.native_host import main  # noqa: E402

if __name__ == "__main__":
    main()
