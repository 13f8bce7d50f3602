"""Centralized path constants for the SubMiner bridge."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

# User-specific state (allows running from read-only installs)
_USER_STATE_ENV = os.environ.get("SUBMINER_STATE_DIR")
USER_STATE_DIR = Path(_USER_STATE_ENV).expanduser() if _USER_STATE_ENV else (Path.home() / ".subminer")
LOGS_DIR = USER_STATE_DIR / "logs"
MASTER_LOG_FILE = LOGS_DIR / "subminer.log"

OPTIONS_FILE_NAME = "mpv-subtitleminer.conf"
MPV_CONFIG_NAME = "mpv.conf"


def is_windows(platform: Optional[str] = None) -> bool:
    return (platform or sys.platform).startswith("win")


def mpv_config_dirs(platform: Optional[str] = None) -> list[Path]:
    """Directories mpv searches for ``mpv.conf``, most specific first."""
    dirs: list[Path] = []

    mpv_home = os.environ.get("MPV_HOME")
    if mpv_home:
        dirs.append(Path(mpv_home).expanduser())

    if is_windows(platform):
        appdata = os.environ.get("APPDATA")
        if appdata:
            dirs.append(Path(appdata) / "mpv")
        dirs.append(Path(sys.executable).resolve().parent / "portable_config")
    else:
        xdg = os.environ.get("XDG_CONFIG_HOME")
        base = Path(xdg).expanduser() if xdg else Path.home() / ".config"
        dirs.append(base / "mpv")
        dirs.append(Path.home() / ".mpv")

    return dirs


def options_file_candidates(config_dir: Path) -> list[Path]:
    """Script option files, in the places mpv keeps ``script-opts``."""
    return [
        config_dir / "script-opts" / OPTIONS_FILE_NAME,
        config_dir / OPTIONS_FILE_NAME,
    ]


def ensure_directories() -> None:
    """Create necessary directories if they don't exist."""
    LOGS_DIR.mkdir(parents=True, exist_ok=True)


__all__ = [
    "USER_STATE_DIR",
    "LOGS_DIR",
    "MASTER_LOG_FILE",
    "OPTIONS_FILE_NAME",
    "MPV_CONFIG_NAME",
    "is_windows",
    "mpv_config_dirs",
    "options_file_candidates",
    "ensure_directories",
]
