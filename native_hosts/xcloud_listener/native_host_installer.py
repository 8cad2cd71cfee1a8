"""Registers the listener as a Chrome Native Messaging host.

Chrome only launches hosts it finds through a manifest in one of its
`NativeMessagingHosts` directories (or, on Windows, through a registry key
pointing at the manifest). The manifest names a launcher wrapper that runs
`python -m native_hosts.xcloud_listener.native_host` from this checkout.
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path

HOST_NAME = "com.xcloud.listener"
_LOGGER = logging.getLogger("xcloud.listener.native_host_installer")
_EXT_ID_RE = re.compile(r"^[a-p]{32}$")
_WRAPPER_NAME = "xcloud-listener-host"


@dataclass(frozen=True, slots=True)
class InstallTarget:
    label: str
    path: Path


@dataclass(slots=True)
class InstallReport:
    ok: bool = False
    wrote: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    manifest_path: str | None = None
    wrapper_path: str | None = None


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def normalize_extension_id(raw: str) -> str | None:
    candidate = str(raw or "").strip().lower()
    if candidate.startswith("chrome-extension://"):
        candidate = candidate[len("chrome-extension://") :].strip("/")
    if _EXT_ID_RE.match(candidate):
        return candidate
    return None


def _extension_ids_from_env() -> list[str]:
    raw = os.environ.get("XCLOUD_EXTENSION_IDS") or os.environ.get("XCLOUD_EXTENSION_ID") or ""
    return [s.strip() for s in raw.split(",") if s.strip()]


# label -> (Linux dir under ~/.config, macOS dir under Application Support, Windows registry key under HKCU)
_BROWSERS: dict[str, tuple[str, str, str]] = {
    "chrome": ("google-chrome", "Google/Chrome", r"Software\Google\Chrome"),
    "chromium": ("chromium", "Chromium", r"Software\Chromium"),
    "edge": ("microsoft-edge", "Microsoft Edge", r"Software\Microsoft\Edge"),
}
_MODULE = "native_hosts.xcloud_listener.native_host"


def _wrapper_path(root: Path, *, platform: str) -> Path:
    return root / ".native-host" / (f"{_WRAPPER_NAME}.cmd" if platform == "win32" else _WRAPPER_NAME)


def _wrapper_script(*, python_exe: str, root: Path, platform: str) -> str:
    # Chrome starts hosts in an unspecified directory; the relative log file belongs in the checkout.
    if platform == "win32":
        lines = ["@echo off", f'cd /d "{root}"', f'set "PYTHONPATH={root};%PYTHONPATH%"', f'"{python_exe}" -m {_MODULE}']
    else:
        lines = [
            "#!/bin/sh",
            f'cd "{root}" || exit 1',
            f'PYTHONPATH="{root}${{PYTHONPATH:+:$PYTHONPATH}}" exec "{python_exe}" -m {_MODULE}',
        ]
    return "\n".join(lines) + "\n"


def _targets_for_platform(platform: str, home: Path) -> list[InstallTarget]:
    if platform == "darwin":
        base = home / "Library" / "Application Support"
        return [InstallTarget(label, base / dirs[1] / "NativeMessagingHosts") for label, dirs in _BROWSERS.items()]
    if platform.startswith("linux"):
        base = home / ".config"
        return [InstallTarget(label, base / dirs[0] / "NativeMessagingHosts") for label, dirs in _BROWSERS.items()]
    return []


def _windows_manifest_path(home: Path) -> Path:
    base = Path(os.environ.get("LOCALAPPDATA") or home / "AppData" / "Local")
    return base / "XcloudListener" / f"{HOST_NAME}.json"


def _write_file(path: Path, content: str, *, mode: int) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    if os.name != "nt":
        path.chmod(mode)


def _register_windows(manifest_file: Path, report: InstallReport) -> None:
    import winreg  # type: ignore[import-not-found]

    for label, (_linux, _mac, reg_base) in _BROWSERS.items():
        key = f"{reg_base}\\NativeMessagingHosts\\{HOST_NAME}"
        try:
            with winreg.CreateKey(winreg.HKEY_CURRENT_USER, key) as handle:
                winreg.SetValueEx(handle, "", 0, winreg.REG_SZ, str(manifest_file))
        except OSError as exc:
            report.errors.append(f"{label}: registry write failed: {exc}")
            continue
        report.wrote.append(f"{label}:HKCU\\{key}")


def build_host_manifest(wrapper: Path, extension_ids: list[str]) -> dict[str, object]:
    return {
        "name": HOST_NAME,
        "description": "Xcloud extension listener (native messaging host).",
        "path": str(wrapper),
        "type": "stdio",
        "allowed_origins": [f"chrome-extension://{ext_id}/" for ext_id in extension_ids],
    }


def install_native_host(
    extension_ids: list[str] | None = None,
    *,
    root: Path | None = None,
    python_exe: str | None = None,
    platform: str | None = None,
    home: Path | None = None,
) -> InstallReport:
    report = InstallReport()
    root = root or _repo_root()
    platform = platform or sys.platform
    home = home or Path.home()
    python_exe = python_exe or sys.executable

    ids: list[str] = []
    for raw in [*(extension_ids or []), *_extension_ids_from_env()]:
        norm = normalize_extension_id(raw)
        if norm is None:
            report.errors.append(f"invalid extension id: {raw!r}")
            continue
        if norm not in ids:
            ids.append(norm)
    if not ids:
        report.errors.append("no extension id given (pass --extension-id or set XCLOUD_EXTENSION_IDS)")
        return report

    if platform == "win32":
        manifest_paths = [_windows_manifest_path(home)]
    else:
        targets = _targets_for_platform(platform, home)
        if not targets:
            report.errors.append(f"unsupported platform for installer: {platform}")
            return report
        manifest_paths = [t.path / f"{HOST_NAME}.json" for t in targets]

    wrapper = _wrapper_path(root, platform=platform)
    try:
        _write_file(wrapper, _wrapper_script(python_exe=python_exe, root=root, platform=platform), mode=0o755)
    except OSError as exc:
        report.errors.append(f"failed to create native host wrapper: {exc}")
        return report
    report.wrapper_path = str(wrapper)
    manifest_text = json.dumps(build_host_manifest(wrapper, ids), indent=2) + "\n"

    for out_path in manifest_paths:
        try:
            _write_file(out_path, manifest_text, mode=0o644)
        except OSError as exc:
            report.errors.append(f"failed to write {out_path}: {exc}")
            continue
        report.manifest_path = report.manifest_path or str(out_path)
        if platform != "win32":
            report.wrote.append(str(out_path))

    if platform == "win32" and report.manifest_path:
        _register_windows(Path(report.manifest_path), report)

    report.ok = bool(report.wrote)
    if report.ok:
        _LOGGER.info("native_host_install_ok targets=%s", report.wrote)
    else:
        _LOGGER.warning("native_host_install_failed errors=%s", report.errors)
    return report


__all__ = [
    "HOST_NAME",
    "InstallReport",
    "InstallTarget",
    "build_host_manifest",
    "install_native_host",
    "normalize_extension_id",
]
