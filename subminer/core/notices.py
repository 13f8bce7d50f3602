"""Short-lived, user-visible status notices.

Inside mpv these are OSD messages; anywhere else they default to log lines.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Protocol

from .constants import NOTICE_MEDIUM, NOTICE_PREFIX
from .logging_utils import get_module_logger


@dataclass(frozen=True)
class Notice:
    text: str
    duration: float = NOTICE_MEDIUM
    level: int = logging.INFO
    created_at: float = field(default_factory=time.monotonic)

    def render(self) -> str:
        return f"{NOTICE_PREFIX} {self.text}"


class NoticeSink(Protocol):
    def __call__(self, notice: Notice) -> None: ...


class LoggingNoticeSink:
    """Default sink: writes notices to the ``subminer.Notices`` logger."""

    def __init__(self) -> None:
        self.logger = get_module_logger("Notices")

    def __call__(self, notice: Notice) -> None:
        self.logger.log(notice.level, notice.render())


class RecordingNoticeSink:
    """Keeps every notice in memory; used by the CLI status view and tests."""

    def __init__(self) -> None:
        self.notices: List[Notice] = []

    def __call__(self, notice: Notice) -> None:
        self.notices.append(notice)

    @property
    def texts(self) -> List[str]:
        return [n.text for n in self.notices]

    def clear(self) -> None:
        self.notices.clear()


class Notifier:
    """Fan-out of notices to one or more sinks."""

    def __init__(self, *sinks: NoticeSink) -> None:
        self._sinks: List[NoticeSink] = list(sinks) or [LoggingNoticeSink()]
        self.logger = get_module_logger("Notifier")

    def add_sink(self, sink: NoticeSink) -> None:
        self._sinks.append(sink)

    def notify(self, text: str, duration: float = NOTICE_MEDIUM, level: int = logging.INFO) -> Notice:
        notice = Notice(text=text, duration=duration, level=level)
        for sink in self._sinks:
            try:
                sink(notice)
            except Exception as e:
                self.logger.error("Notice sink failed: %s", e)
        return notice

    def warn(self, text: str, duration: float = NOTICE_MEDIUM) -> Notice:
        return self.notify(text, duration, logging.WARNING)

    def error(self, text: str, duration: float = NOTICE_MEDIUM) -> Notice:
        return self.notify(text, duration, logging.ERROR)


