"""Command-line entry point: ``python -m subminer supervise|watch``."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import Optional, Sequence

from subminer.core.asyncio_utils import create_logged_task
from subminer.core.connection.connection_manager import ConnectionState
from subminer.core.constants import AUTO_START_DELAY, DEFAULT_HOST, DEFAULT_PORTS, TOGGLE_KEY, TOGGLE_MESSAGE
from subminer.core.context import AppContext
from subminer.core.errors import ConfigurationError
from subminer.core.logging_utils import get_module_logger
from subminer.core.paths import options_file_candidates
from subminer.core.settings import ClientSettings, MediaSettings, ScriptOptions
from subminer.core.store.item_store import SubtitleItem
from subminer.core.supervisor.endpoint import locate_installation, transcoder_supports_https

from .common import (
    add_common_cli_arguments,
    install_signal_handlers,
    ports_argument,
    positive_float,
    setup_logging_from_args,
)

logger = get_module_logger("CLI")

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="subminer",
        description="Supervise the mpv-subtitleminer helper and talk to it over WebSocket",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    supervise = subparsers.add_parser(
        "supervise",
        help="Run the helper on the first free port until interrupted",
        description=(
            f"Starts the helper and keeps it supervised. Send SIGUSR1 to toggle it, "
            f"the same as the '{TOGGLE_MESSAGE}' script message ({TOGGLE_KEY} in mpv)."
        ),
    )
    add_common_cli_arguments(supervise)
    supervise.add_argument("--mpv-config", type=Path, default=None, help="Path to mpv.conf or its directory")
    supervise.add_argument("--options", type=Path, default=None, help="Script options file (key = value)")
    supervise.add_argument("--ports", type=ports_argument, default=None, help="Comma-delimited candidate ports")
    supervise.add_argument("--mpv-pid", type=int, default=None, help="PID of the mpv instance the helper must serve")
    supervise.add_argument(
        "--start-delay",
        type=positive_float,
        default=AUTO_START_DELAY,
        help="Seconds to wait before starting the helper",
    )
    supervise.add_argument(
        "--connect",
        action="store_true",
        default=False,
        help="Also connect to the helper ports and log subtitles",
    )
    supervise.add_argument(
        "--check-https",
        action="store_true",
        default=False,
        help="Warn if the ffmpeg build lacks the https protocol",
    )

    watch = subparsers.add_parser("watch", help="Connect to helper ports and log subtitles as they arrive")
    add_common_cli_arguments(watch)
    watch.add_argument(
        "--ports",
        type=ports_argument,
        default=[DEFAULT_PORTS[0]],
        help="Comma-delimited helper ports",
    )
    watch.add_argument("--host", default=DEFAULT_HOST, help="Helper host")
    watch.add_argument(
        "--thumbnails",
        action="store_true",
        default=False,
        help="Request a thumbnail for every new subtitle",
    )

    return parser


def _find_options_file(explicit: Optional[Path], config_dir: Path) -> Optional[Path]:
    if explicit is not None:
        return explicit
    for candidate in options_file_candidates(config_dir):
        if candidate.is_file():
            return candidate
    return None


def _log_status(port: int, state: ConnectionState) -> None:
    logger.info("Port %d: %s", port, state.value)


class SubtitleLogger:
    """Logs each subtitle once and optionally fetches its thumbnail."""

    def __init__(self, context: AppContext, fetch_thumbnails: bool = False):
        self.context = context
        self.fetch_thumbnails = fetch_thumbnails
        self._seen: set = set()
        self._tasks: set[asyncio.Task] = set()

    def __call__(self, item: SubtitleItem) -> None:
        if item.key in self._seen:
            return
        self._seen.add(item.key)
        logger.info("[%d] #%d %.2fs: %s", item.source_port, item.id, item.display_time, item.text)
        if self.fetch_thumbnails:
            create_logged_task(
                self._thumbnail(item),
                logger=logger,
                context=f"thumbnail-{item.source_port}-{item.id}",
                pending=self._tasks,
            )

    def forget(self, item: SubtitleItem) -> None:
        self._seen.discard(item.key)

    async def _thumbnail(self, item: SubtitleItem) -> None:
        blob = await self.context.correlator.request_thumbnail(item.source_port, item.id)
        if blob is None:
            logger.info("No thumbnail for #%d", item.id)
        else:
            logger.info("Thumbnail for #%d: %s, %d base64 chars", item.id, blob.mime_type, len(blob.data))


async def run_supervise(args: argparse.Namespace) -> int:
    installation = locate_installation(args.mpv_config)
    options_path = _find_options_file(args.options, installation.config_dir)
    options = await ScriptOptions.load(options_path)

    ports = args.ports or options.ports
    host_pid = args.mpv_pid if args.mpv_pid is not None else options.mpv_pid

    if args.check_https:
        await transcoder_supports_https(installation.transcoder_path)

    context = AppContext(
        settings=ClientSettings(host=options.host, ports=list(ports)),
        installation=installation,
        host_pid=host_pid,
    )
    supervisor = context.supervisor

    def _toggle() -> None:
        create_logged_task(supervisor.toggle(), logger=logger, context="helper-toggle")

    if args.connect:
        context.store.add_change_listener(SubtitleLogger(context))
        context.manager.add_status_listener(_log_status)

    install_signal_handlers(context, asyncio.get_running_loop(), on_toggle=_toggle)
    try:
        await context.init(
            connect=args.connect,
            auto_start=options.auto_start,
            auto_start_delay=args.start_delay,
        )
        if not options.auto_start:
            logger.info("Auto start disabled; send SIGUSR1 to start the helper")
        await context.wait_for_shutdown()
    finally:
        await context.teardown()
    return EXIT_OK


async def run_watch(args: argparse.Namespace) -> int:
    context = AppContext(
        settings=ClientSettings(host=args.host, ports=list(args.ports), media=MediaSettings()),
    )
    subtitle_logger = SubtitleLogger(context, fetch_thumbnails=args.thumbnails)
    context.store.add_change_listener(subtitle_logger)
    context.store.add_eviction_listener(subtitle_logger.forget)
    context.manager.add_status_listener(_log_status)

    install_signal_handlers(context, asyncio.get_running_loop())
    try:
        await context.init(connect=True)
        await context.wait_for_shutdown()
    finally:
        await context.teardown()
    return EXIT_OK


COMMANDS = {
    "supervise": run_supervise,
    "watch": run_watch,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    setup_logging_from_args(args)

    try:
        return asyncio.run(COMMANDS[args.command](args))
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        return EXIT_OK
