"""Script options and client settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

from .config_manager import get_config_manager
from .constants import (
    DEFAULT_AUDIO_OFFSET,
    DEFAULT_HOST,
    DEFAULT_PORTS,
    MAX_PORT,
    MIN_PORT,
)
from .errors import ConfigurationError
from .logging_utils import get_module_logger

logger = get_module_logger("Settings")

PortsValue = Union[str, int, Iterable[Union[str, int]]]


def _coerce_port(raw: Union[str, int]) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        port = raw
    else:
        try:
            port = int(str(raw).strip())
        except ValueError:
            return None
    if MIN_PORT <= port <= MAX_PORT:
        return port
    return None


def parse_ports(value: PortsValue) -> list[int]:
    """Parse a candidate port list from a comma-delimited string or a list.

    Invalid entries are logged and skipped. An empty result raises
    :class:`ConfigurationError` because the supervisor needs at least one port.
    """
    if isinstance(value, str):
        raw_items: list[Union[str, int]] = [part for part in value.split(",") if part.strip()]
    elif isinstance(value, int) and not isinstance(value, bool):
        raw_items = [value]
    else:
        raw_items = list(value)

    ports: list[int] = []
    for raw in raw_items:
        port = _coerce_port(raw)
        if port is None:
            logger.warning("Invalid port value: %s", str(raw).strip())
            continue
        ports.append(port)

    if not ports:
        raise ConfigurationError("No valid ports configured")
    return ports


@dataclass
class ScriptOptions:
    """Host-side options, read from ``script-opts/mpv-subtitleminer.conf``."""

    ports: list[int] = field(default_factory=lambda: list(DEFAULT_PORTS))
    auto_start: bool = True
    mpv_pid: Optional[int] = None
    host: str = DEFAULT_HOST

    @classmethod
    def from_mapping(cls, config: Dict[str, str]) -> "ScriptOptions":
        manager = get_config_manager()
        ports = parse_ports(config["ports"]) if "ports" in config else list(DEFAULT_PORTS)
        mpv_pid = manager.get_int(config, "mpv_pid", default=None)
        if mpv_pid is not None and mpv_pid <= 0:
            mpv_pid = None
        return cls(
            ports=ports,
            auto_start=manager.get_bool(config, "auto_start", default=True),
            mpv_pid=mpv_pid,
            host=manager.get_str(config, "host", default=DEFAULT_HOST) or DEFAULT_HOST,
        )

    @classmethod
    async def load(cls, path: Optional[Path]) -> "ScriptOptions":
        if path is None:
            return cls()
        config = await get_config_manager().read_config_async(path)
        if config:
            logger.info("Loaded options from %s", path)
        return cls.from_mapping(config)


@dataclass
class MediaSettings:
    """Encoding hints forwarded verbatim to the helper with each request."""

    audio_offset_start: float = DEFAULT_AUDIO_OFFSET
    audio_offset_end: float = DEFAULT_AUDIO_OFFSET
    image_format: str = "webp"
    image_quality: int = 80
    image_animated: bool = False
    image_size: str = ""
    image_advanced: bool = False
    image_advanced_args: str = ""
    image_advanced_extension: str = ""
    audio_format: str = "mp3"
    audio_quality: int = 128
    audio_filters: str = ""
    audio_advanced: bool = False
    audio_advanced_args: str = ""
    audio_advanced_extension: str = ""

    @classmethod
    def from_mapping(cls, config: Dict[str, str]) -> "MediaSettings":
        manager = get_config_manager()
        defaults = cls()
        return cls(
            audio_offset_start=manager.get_float(config, "audio_offset_start", defaults.audio_offset_start),
            audio_offset_end=manager.get_float(config, "audio_offset_end", defaults.audio_offset_end),
            image_format=manager.get_str(config, "image_format", defaults.image_format),
            image_quality=manager.get_int(config, "image_quality", defaults.image_quality),
            image_animated=manager.get_bool(config, "image_animated", defaults.image_animated),
            image_size=manager.get_str(config, "image_size", defaults.image_size),
            audio_format=manager.get_str(config, "audio_format", defaults.audio_format),
            audio_quality=manager.get_int(config, "audio_quality", defaults.audio_quality),
            audio_filters=manager.get_str(config, "audio_filters", defaults.audio_filters),
        )

    def image_config(self) -> Dict[str, Any]:
        config: Dict[str, Any] = {
            "format": self.image_format,
            "quality": self.image_quality,
            "is_animated": self.image_animated,
        }
        if self.image_size.strip():
            config["size"] = self.image_size.strip()
        if self.image_advanced and self.image_advanced_args.strip():
            config["advanced_args"] = self.image_advanced_args.strip()
            if self.image_advanced_extension:
                config["format"] = self.image_advanced_extension
        return config

    def audio_config(self) -> Dict[str, Any]:
        config: Dict[str, Any] = {
            "format": self.audio_format,
            "quality": self.audio_quality,
        }
        if self.audio_filters.strip():
            config["filters"] = self.audio_filters.strip()
        if self.audio_advanced and self.audio_advanced_args.strip():
            config["advanced_args"] = self.audio_advanced_args.strip()
            if self.audio_advanced_extension:
                config["format"] = self.audio_advanced_extension
        return config


@dataclass
class ClientSettings:
    """Which helper instances a client talks to, and how it asks for media."""

    host: str = DEFAULT_HOST
    ports: list[int] = field(default_factory=lambda: [DEFAULT_PORTS[0]])
    media: MediaSettings = field(default_factory=MediaSettings)

    @classmethod
    def create(
        cls,
        ports: PortsValue,
        host: str = DEFAULT_HOST,
        media: Optional[MediaSettings] = None,
    ) -> "ClientSettings":
        return cls(host=host, ports=parse_ports(ports), media=media or MediaSettings())
