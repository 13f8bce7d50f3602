"""Process-wide logging setup for the SubMiner bridge."""

from __future__ import annotations

import contextlib
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, List, Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 500 * 1024
LOG_BACKUP_COUNT = 2

# Chatty at INFO; the bridge only cares about their errors
DEFAULT_SUPPRESSED_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio")

_configured = False


def coerce_level(level: Union[int, str]) -> int:
    """Accept ``logging.INFO`` or a name such as ``"info"``."""
    if isinstance(level, int):
        return level
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level '{level}'")
    return numeric


def _build_handlers(
    level: int,
    console: bool,
    log_file: Optional[Path],
    max_bytes: int,
    backup_count: int,
) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        ))

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    force: bool = False,
    console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
    max_bytes: int = LOG_MAX_BYTES,
    backup_count: int = LOG_BACKUP_COUNT,
    suppressed_loggers: Iterable[str] = DEFAULT_SUPPRESSED_LOGGERS,
) -> None:
    """Install the console and rotating-file handlers on the root logger.

    A second call only adjusts the level unless ``force`` is set, in which
    case existing root handlers are closed and replaced.
    """
    global _configured
    numeric_level = coerce_level(level)
    root = logging.getLogger()

    if force or not _configured:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            with contextlib.suppress(Exception):
                handler.close()

        path = Path(log_file) if log_file else None
        handlers = _build_handlers(numeric_level, console, path, max_bytes, backup_count)
        if not handlers:
            handlers = _build_handlers(numeric_level, True, None, max_bytes, backup_count)
        for handler in handlers:
            root.addHandler(handler)
        _configured = True

    root.setLevel(numeric_level)
    for name in suppressed_loggers:
        logging.getLogger(name).setLevel(logging.ERROR)


__all__ = ["configure_logging", "coerce_level", "LOG_FORMAT", "LOG_DATEFMT"]
