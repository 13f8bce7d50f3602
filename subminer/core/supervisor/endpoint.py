"""Discovery of mpv's IPC endpoint and the helper installation."""

from __future__ import annotations

import asyncio
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from subminer.core.config_manager import get_config_manager
from subminer.core.errors import ConfigurationError
from subminer.core.logging_utils import get_module_logger
from subminer.core.paths import MPV_CONFIG_NAME, is_windows, mpv_config_dirs

logger = get_module_logger("Endpoint")

IPC_SERVER_KEY = "input-ipc-server"
HELPER_BINARY_NAME = "mpv-subtitleminer"
TRANSCODER_NAME = "ffmpeg"
WINDOWS_PIPE_PREFIX = "\\\\.\\pipe"

_LENGTH_PREFIX_RE = re.compile(r"^%(\d+)%")


@dataclass(frozen=True)
class HelperInstallation:
    """Everything the supervisor needs to launch the helper."""
    config_path: Path
    binary_path: Path
    transcoder_path: str
    control_endpoint: str

    @property
    def config_dir(self) -> Path:
        return self.config_path.parent


def strip_length_prefix(value: str) -> str:
    """Drop mpv's optional ``%<len>%`` value prefix."""
    return _LENGTH_PREFIX_RE.sub("", value, count=1)


def normalize_control_endpoint(value: str, platform: Optional[str] = None) -> str:
    """Turn an ``input-ipc-server`` value into something the helper can open.

    On Windows the value names a pipe: bare paths are placed under
    ``\\\\.\\pipe`` and forward slashes become backslashes.
    """
    endpoint = strip_length_prefix(value.rstrip())
    if not is_windows(platform):
        return endpoint

    if endpoint.startswith("\\\\.\\pipe") or endpoint.startswith("//./pipe"):
        return endpoint.replace("/", "\\")

    converted = endpoint.replace("/", "\\")
    if not converted.startswith("\\"):
        converted = "\\" + converted
    return WINDOWS_PIPE_PREFIX + converted


def find_mpv_config(explicit: Optional[Path] = None, platform: Optional[str] = None) -> Path:
    if explicit is not None:
        path = Path(explicit).expanduser()
        if path.is_dir():
            path = path / MPV_CONFIG_NAME
        if path.is_file():
            return path
        raise ConfigurationError(f"Could not find mpv.conf at {path}")

    for directory in mpv_config_dirs(platform):
        candidate = directory / MPV_CONFIG_NAME
        if candidate.is_file():
            return candidate

    raise ConfigurationError("Could not find mpv.conf")


def discover_control_endpoint(config_path: Path, platform: Optional[str] = None) -> str:
    value = get_config_manager().find_first(config_path, IPC_SERVER_KEY)
    if not value:
        raise ConfigurationError("input-ipc-server not configured in mpv.conf")
    endpoint = normalize_control_endpoint(value, platform)
    if not endpoint:
        raise ConfigurationError("input-ipc-server not configured in mpv.conf")
    return endpoint


def helper_binary_path(config_dir: Path, platform: Optional[str] = None) -> Path:
    name = HELPER_BINARY_NAME + (".exe" if is_windows(platform) else "")
    path = config_dir / name
    if not path.is_file():
        raise ConfigurationError(f"mpv-subtitleminer binary not found at {path}")
    return path


def find_transcoder(config_dir: Path, platform: Optional[str] = None) -> str:
    """Prefer an ffmpeg shipped next to the helper, then fall back to PATH."""
    name = TRANSCODER_NAME + (".exe" if is_windows(platform) else "")
    local = config_dir / name
    if local.is_file():
        logger.info("Found ffmpeg next to binary: %s", local)
        return str(local)

    logger.info("Using ffmpeg from PATH")
    return name


async def transcoder_supports_https(transcoder: str) -> bool:
    """Check ``ffmpeg -protocols`` for https; network streams need it."""
    executable = shutil.which(transcoder) or transcoder
    try:
        proc = await asyncio.create_subprocess_exec(
            executable, "-protocols",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, _ = await proc.communicate()
    except OSError as e:
        logger.warning("Could not run %s: %s", transcoder, e)
        return False

    if b"https" in stdout:
        logger.info("ffmpeg has HTTPS protocol support")
        return True

    logger.warning("ffmpeg does NOT have HTTPS support - network streams will not work!")
    logger.warning("To enable network support, use an ffmpeg build with openssl/gnutls enabled")
    return False


def locate_installation(
    mpv_config: Optional[Path] = None,
    platform: Optional[str] = None,
) -> HelperInstallation:
    """Resolve mpv.conf, the helper binary, ffmpeg and the IPC endpoint.

    Raises:
        ConfigurationError: if any piece is missing.
    """
    config_path = find_mpv_config(mpv_config, platform)
    config_dir = config_path.parent

    binary_path = helper_binary_path(config_dir, platform)
    logger.info("mpv-subtitleminer binary found at: %s", binary_path)

    transcoder = find_transcoder(config_dir, platform)
    control_endpoint = discover_control_endpoint(config_path, platform)
    logger.info("Using mpv IPC socket at: %s", control_endpoint)

    return HelperInstallation(
        config_path=config_path,
        binary_path=binary_path,
        transcoder_path=transcoder,
        control_endpoint=control_endpoint,
    )
