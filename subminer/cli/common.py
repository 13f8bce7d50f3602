"""Argument helpers shared by every ``subminer`` subcommand."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
from pathlib import Path
from typing import Any, Callable, Optional

from subminer.core.errors import ConfigurationError
from subminer.core.logging_config import configure_logging
from subminer.core.paths import MASTER_LOG_FILE, ensure_directories
from subminer.core.settings import parse_ports


LOG_LEVELS: dict[str, int] = {
    name: logging.getLevelName(name.upper())
    for name in ("critical", "error", "warning", "info", "debug")
}


def add_common_cli_arguments(parser: argparse.ArgumentParser) -> None:
    logging_group = parser.add_argument_group("logging")
    logging_group.add_argument(
        "--log-level",
        choices=sorted(LOG_LEVELS),
        default="info",
        help="verbosity of the bridge log (default: %(default)s)",
    )
    logging_group.add_argument(
        "--log-file",
        type=Path,
        help="also write a rotating log to this path",
    )

    output = logging_group.add_mutually_exclusive_group()
    output.add_argument("--console", dest="console_output", action="store_true", default=True,
                        help="log to stderr (default)")
    output.add_argument("--no-console", dest="console_output", action="store_false",
                        help=f"log to file only (default file: {MASTER_LOG_FILE})")


def ports_argument(value: str) -> list[int]:
    """Parse ``--ports``; a list with no usable port is a usage error."""
    try:
        return parse_ports(value)
    except ConfigurationError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def positive_float(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"'{value}' is not a number") from exc
    if seconds < 0:
        raise argparse.ArgumentTypeError(f"'{value}' must not be negative")
    return seconds


def setup_logging_from_args(args: Any) -> None:
    log_file: Optional[Path] = getattr(args, "log_file", None)
    console = getattr(args, "console_output", True)
    if not console and log_file is None:
        ensure_directories()
        log_file = MASTER_LOG_FILE

    configure_logging(
        LOG_LEVELS[getattr(args, "log_level", "info")],
        force=True,
        console=console,
        log_file=log_file,
    )


def install_signal_handlers(
    context: Any,
    loop: asyncio.AbstractEventLoop,
    on_toggle: Optional[Callable[[], Any]] = None,
) -> None:
    """SIGINT and SIGTERM request shutdown; SIGUSR1 calls ``on_toggle``.

    Platforms without loop signal support simply skip registration.
    """
    handlers: dict[Any, Callable[[], Any]] = {
        signal.SIGINT: context.request_shutdown,
        signal.SIGTERM: context.request_shutdown,
    }
    toggle_signal = getattr(signal, "SIGUSR1", None)
    if on_toggle is not None and toggle_signal is not None:
        handlers[toggle_signal] = on_toggle

    for sig, handler in handlers.items():
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, handler)
