"""Unit tests for asyncio task helpers."""

import asyncio
import logging

import pytest

from subminer.core.asyncio_utils import call_later_task, cancel_task, create_logged_task
from subminer.core.logging_utils import get_module_logger


class TestCreateLoggedTask:

    @pytest.mark.asyncio
    async def test_exception_is_logged(self, caplog):
        async def fail():
            raise ValueError("boom")

        with caplog.at_level(logging.ERROR):
            task = create_logged_task(fail(), logger=get_module_logger("Tasks"), context="failing")
            for _ in range(3):
                await asyncio.sleep(0)

        assert task.done()
        assert "[Tasks] Unhandled exception in failing" in caplog.text

    @pytest.mark.asyncio
    async def test_pending_set_tracks_task(self):
        pending = set()

        task = create_logged_task(asyncio.sleep(0), pending=pending)
        assert task in pending

        await task
        await asyncio.sleep(0)
        assert task not in pending


class TestCallLater:

    @pytest.mark.asyncio
    async def test_sync_callback(self):
        calls = []
        call_later_task(0.01, lambda: calls.append("fired"))

        await asyncio.sleep(0.05)
        assert calls == ["fired"]

    @pytest.mark.asyncio
    async def test_coroutine_callback(self):
        calls = []

        async def fire():
            calls.append("fired")

        call_later_task(0.01, fire)
        await asyncio.sleep(0.05)
        assert calls == ["fired"]

    @pytest.mark.asyncio
    async def test_cancel_prevents_callback(self):
        calls = []
        task = call_later_task(0.05, lambda: calls.append("fired"))

        await cancel_task(task)
        await asyncio.sleep(0.08)

        assert calls == []
        assert task.cancelled()

    @pytest.mark.asyncio
    async def test_cancel_none_is_noop(self):
        await cancel_task(None)
