"""Component-scoped loggers for the SubMiner bridge.

Every logger lives under the ``subminer`` namespace and tags its records with
``[Component]`` so interleaved output from the supervisor, the sockets and
the store stays readable in one stream.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

MODULE_LOGGER_NAMESPACE = "subminer"
DEFAULT_COMPONENT = "Core"


def _qualified(name: Optional[str]) -> str:
    if not name:
        return MODULE_LOGGER_NAMESPACE
    prefix = MODULE_LOGGER_NAMESPACE + "."
    if name == MODULE_LOGGER_NAMESPACE or name.startswith(prefix):
        return name
    return prefix + name


def _component_of(logger_name: str) -> str:
    _, _, tail = logger_name.partition(MODULE_LOGGER_NAMESPACE + ".")
    if logger_name.startswith(MODULE_LOGGER_NAMESPACE):
        return tail or DEFAULT_COMPONENT
    return logger_name or DEFAULT_COMPONENT


class StructuredLogger(logging.LoggerAdapter):
    """Adapter that prefixes each message with its component tag."""

    def __init__(self, logger: logging.Logger, component: Optional[str] = None) -> None:
        super().__init__(logger, {})
        self.component = component or _component_of(logger.name)

    @property
    def name(self) -> str:
        return self.logger.name

    def process(self, msg, kwargs):
        tag = f"[{self.component}]"
        text = str(msg)
        return (text if text.startswith(tag) else f"{tag} {text}"), kwargs


LoggerLike = Union[StructuredLogger, logging.Logger, logging.LoggerAdapter, None]


def ensure_structured_logger(
    logger: LoggerLike,
    *,
    component: Optional[str] = None,
    fallback_name: Optional[str] = None,
) -> StructuredLogger:
    """Wrap ``logger``, or hand out a namespace logger when it is None."""
    if isinstance(logger, StructuredLogger):
        return logger
    if isinstance(logger, logging.LoggerAdapter):
        logger = logger.logger
    if isinstance(logger, logging.Logger):
        return StructuredLogger(logger, component=component)
    return get_module_logger(fallback_name)


def get_module_logger(name: Optional[str] = None) -> StructuredLogger:
    return StructuredLogger(logging.getLogger(_qualified(name)))


__all__ = [
    "MODULE_LOGGER_NAMESPACE",
    "LoggerLike",
    "StructuredLogger",
    "ensure_structured_logger",
    "get_module_logger",
]
