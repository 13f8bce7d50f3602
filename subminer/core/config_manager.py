"""Readers for the flat ``key=value`` files mpv and its scripts use."""

import asyncio
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Tuple, TypeVar

import aiofiles

from subminer.core.logging_utils import get_module_logger


logger = get_module_logger("ConfigManager")

T = TypeVar("T")

TRUE_WORDS = frozenset({"true", "1", "yes", "on"})
QUOTES = ('"', "'")


def parse_entry(raw_line: str) -> Optional[Tuple[str, str]]:
    """Split one line into ``(key, value)``.

    Blank lines, ``#`` comments and lines without ``=`` yield None. Trailing
    comments and one pair of matching quotes are removed from the value.
    """
    text = raw_line.strip()
    if text.startswith("#"):
        return None
    key, sep, value = text.partition("=")
    if not sep:
        return None

    value = value.partition("#")[0].strip()
    if len(value) >= 2 and value[0] in QUOTES and value[-1] == value[0]:
        value = value[1:-1]
    return key.strip(), value


def parse_entries(lines: Iterable[str]) -> Dict[str, str]:
    entries = (parse_entry(line) for line in lines)
    return dict(entry for entry in entries if entry is not None)


class ConfigManager:
    """Reads ``mpv.conf`` and the script options file."""

    async def read_config_async(self, config_path: Path) -> Dict[str, str]:
        """Parse ``config_path``; later keys win and a missing file is empty."""
        if not await asyncio.to_thread(config_path.exists):
            return {}
        try:
            async with aiofiles.open(config_path, "r", encoding="utf-8") as handle:
                text = await handle.read()
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Could not read %s: %s", config_path, exc)
            return {}
        return parse_entries(text.splitlines())

    def find_first(self, config_path: Path, key: str) -> Optional[str]:
        """Return the first non-empty raw value for ``key`` in ``config_path``.

        mpv's own syntax is kept intact: no comment or quote stripping, only
        surrounding whitespace.
        """
        try:
            text = config_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Could not read %s: %s", config_path, exc)
            return None

        for line in text.splitlines():
            stripped = line.lstrip()
            if not stripped.startswith(key):
                continue
            remainder = stripped[len(key):].lstrip()
            if remainder.startswith("="):
                value = remainder[1:].strip()
                if value:
                    return value
        return None

    @staticmethod
    def _convert(
        config: Dict[str, str],
        key: str,
        default: T,
        convert: Callable[[str], T],
    ) -> T:
        raw = config.get(key)
        if raw is None:
            return default
        try:
            return convert(raw)
        except ValueError:
            logger.warning("Ignoring bad value %r for %s, keeping %r", raw, key, default)
            return default

    def get_bool(self, config: Dict[str, str], key: str, default: bool = False) -> bool:
        return self._convert(config, key, default, lambda raw: raw.lower() in TRUE_WORDS)

    def get_int(self, config: Dict[str, str], key: str, default: Optional[int] = 0) -> Optional[int]:
        return self._convert(config, key, default, int)

    def get_float(self, config: Dict[str, str], key: str, default: float = 0.0) -> float:
        return self._convert(config, key, default, float)

    def get_str(self, config: Dict[str, str], key: str, default: str = "") -> str:
        return config.get(key, default)


_config_manager = ConfigManager()


def get_config_manager() -> ConfigManager:
    return _config_manager
