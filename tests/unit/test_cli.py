"""Unit tests for the command-line entry point."""

import argparse
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from subminer.cli.common import ports_argument, setup_logging_from_args
from subminer.cli.main import EXIT_CONFIG_ERROR, EXIT_OK, build_parser, main, run_supervise
from subminer.core.paths import MASTER_LOG_FILE
from subminer.core.supervisor import HelperInstallation


class TestParser:

    def test_watch_defaults(self):
        args = build_parser().parse_args(["watch"])
        assert args.ports == [61777]
        assert args.host == "127.0.0.1"
        assert args.log_level == "info"

    def test_ports_are_validated(self):
        args = build_parser().parse_args(["watch", "--ports", "61777, x, 61778"])
        assert args.ports == [61777, 61778]

    def test_no_valid_ports_is_usage_error(self):
        with pytest.raises(argparse.ArgumentTypeError):
            ports_argument("0,x")
        with pytest.raises(SystemExit):
            build_parser().parse_args(["watch", "--ports", "0"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestLoggingSetup:

    def test_file_only_falls_back_to_master_log(self):
        args = build_parser().parse_args(["watch", "--no-console", "--log-level", "debug"])

        with patch("subminer.cli.common.ensure_directories") as ensure, \
                patch("subminer.cli.common.configure_logging") as configure:
            setup_logging_from_args(args)

        ensure.assert_called_once_with()
        configure.assert_called_once_with(
            logging.DEBUG, force=True, console=False, log_file=MASTER_LOG_FILE,
        )


class TestMain:

    def test_missing_mpv_config_exits_with_config_error(self, tmp_path):
        with patch("subminer.cli.main.setup_logging_from_args"):
            code = main(["supervise", "--mpv-config", str(tmp_path / "missing.conf")])
        assert code == EXIT_CONFIG_ERROR


class TestSupervise:

    @pytest.mark.asyncio
    async def test_options_file_feeds_context(self, tmp_path):
        options = tmp_path / "script-opts" / "mpv-subtitleminer.conf"
        options.parent.mkdir()
        options.write_text("ports=62000,62001\nmpv_pid=77\nauto_start=no\n", encoding="utf-8")
        installation = HelperInstallation(
            config_path=tmp_path / "mpv.conf",
            binary_path=tmp_path / "mpv-subtitleminer",
            transcoder_path="ffmpeg",
            control_endpoint="/tmp/mpvsocket",
        )

        context = MagicMock()
        context.init = AsyncMock()
        context.wait_for_shutdown = AsyncMock()
        context.teardown = AsyncMock()
        args = build_parser().parse_args(["supervise"])

        with patch("subminer.cli.main.locate_installation", return_value=installation), \
                patch("subminer.cli.main.AppContext", return_value=context) as factory, \
                patch("subminer.cli.main.install_signal_handlers"):
            code = await run_supervise(args)

        assert code == EXIT_OK
        kwargs = factory.call_args.kwargs
        assert kwargs["settings"].ports == [62000, 62001]
        assert kwargs["host_pid"] == 77
        assert kwargs["installation"] is installation
        context.init.assert_awaited_once_with(connect=False, auto_start=False, auto_start_delay=1.0)
        context.teardown.assert_awaited_once()
