"""Small task helpers shared by the supervisor and the socket manager."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Awaitable, Callable, Optional

from .logging_utils import LoggerLike, StructuredLogger, ensure_structured_logger


def _report_failure(task: asyncio.Task[Any], logger: StructuredLogger, label: str) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Unhandled exception in %s", label, exc_info=exc)


def create_logged_task(
    coro: Awaitable[Any],
    *,
    logger: LoggerLike = None,
    context: Optional[str] = None,
    pending: Optional[set[asyncio.Task[Any]]] = None,
) -> asyncio.Task[Any]:
    """Schedule ``coro`` and log its exception, if any, when it finishes.

    ``context`` names the task in the log line. When ``pending`` is given the
    task is kept in it until done.
    """
    task = asyncio.get_running_loop().create_task(coro)
    if context:
        task.set_name(context)

    task_logger = ensure_structured_logger(logger, fallback_name="asyncio")
    label = context or task.get_name() or "background task"
    task.add_done_callback(lambda done: _report_failure(done, task_logger, label))

    if pending is not None:
        pending.add(task)
        task.add_done_callback(pending.discard)
    return task


def call_later_task(
    delay: float,
    callback: Callable[[], Any],
    *,
    logger: LoggerLike = None,
    context: Optional[str] = None,
) -> asyncio.Task[Any]:
    """One-shot timer; cancelling the returned task disarms it.

    ``callback`` may be sync or return a coroutine, which is awaited.
    """

    async def _timer() -> None:
        await asyncio.sleep(delay)
        outcome = callback()
        if asyncio.iscoroutine(outcome):
            await outcome

    return create_logged_task(_timer(), logger=logger, context=context)


async def cancel_task(task: Optional[asyncio.Task[Any]]) -> None:
    if task is None or task.done():
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
