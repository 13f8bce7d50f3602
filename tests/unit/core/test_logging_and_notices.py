"""Unit tests for structured logging, logging setup and notices."""

import logging

import pytest

from subminer.core.logging_config import coerce_level, configure_logging
from subminer.core.logging_utils import StructuredLogger, ensure_structured_logger, get_module_logger
from subminer.core.notices import Notice, Notifier, RecordingNoticeSink


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


class TestStructuredLogger:

    def test_namespace_and_component(self):
        logger = get_module_logger("ItemStore")
        assert logger.name == "subminer.ItemStore"
        assert logger.component == "ItemStore"

    def test_messages_are_prefixed(self, caplog):
        logger = get_module_logger("Widget")
        with caplog.at_level(logging.INFO):
            logger.info("value is %d", 3)
        assert "[Widget] value is 3" in caplog.text

    def test_wraps_plain_logger(self):
        wrapped = ensure_structured_logger(logging.getLogger("plain"), component="Plain")
        assert isinstance(wrapped, StructuredLogger)
        assert wrapped.component == "Plain"


class TestConfigureLogging:

    def test_coerce_level(self):
        assert coerce_level("debug") == logging.DEBUG
        assert coerce_level(logging.WARNING) == logging.WARNING
        with pytest.raises(ValueError):
            coerce_level("loud")

    def test_file_handler_and_suppression(self, tmp_path, restore_root_logging):
        log_file = tmp_path / "logs" / "subminer.log"

        configure_logging("info", force=True, console=False, log_file=log_file)
        get_module_logger("Test").info("written to file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "[Test] written to file" in log_file.read_text(encoding="utf-8")
        assert logging.getLogger("aiohttp.client").level == logging.ERROR


class TestNotices:

    def test_render_uses_prefix(self):
        assert Notice("Connecting...").render() == "[mpv-subtitleminer] Connecting..."

    def test_fan_out_to_sinks(self):
        first, second = RecordingNoticeSink(), RecordingNoticeSink()
        notifier = Notifier(first)
        notifier.add_sink(second)

        notifier.warn("Port busy", 2)

        assert first.texts == second.texts == ["Port busy"]
        assert first.notices[0].level == logging.WARNING
        assert first.notices[0].duration == 2

    def test_failing_sink_does_not_block_others(self):
        def broken(notice):
            raise RuntimeError("sink down")

        sink = RecordingNoticeSink()
        Notifier(broken, sink).error("oops")

        assert sink.texts == ["oops"]

    def test_default_sink_logs(self, caplog):
        with caplog.at_level(logging.INFO):
            Notifier().notify("server started on port 61777")
        assert "[mpv-subtitleminer] server started on port 61777" in caplog.text
