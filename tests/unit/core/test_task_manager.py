"""Unit tests for AsyncTaskManager."""

import asyncio
import logging

import pytest

from clip_retention.core.task_manager import AsyncTaskManager


class TestAsyncTaskManager:
    @pytest.mark.asyncio
    async def test_finished_tasks_are_forgotten(self):
        manager = AsyncTaskManager("Test")

        await manager.create(asyncio.sleep(0), name="quick")
        await asyncio.sleep(0)

        assert manager.pending() == []

    @pytest.mark.asyncio
    async def test_failures_are_logged(self, caplog):
        manager = AsyncTaskManager("Test")

        async def boom():
            raise RuntimeError("disk monitor crashed")

        task = manager.create(boom(), name="disk-monitor")
        with caplog.at_level(logging.ERROR, logger="clip_retention"):
            await asyncio.gather(task, return_exceptions=True)
            await asyncio.sleep(0)

        assert any("disk-monitor failed" in record.getMessage() for record in caplog.records)

    @pytest.mark.asyncio
    async def test_shutdown_cancels_pending(self):
        manager = AsyncTaskManager("Test")
        task = manager.create(asyncio.sleep(60), name="slow")

        assert manager.pending() == ["slow"]
        assert await manager.shutdown(timeout=1.0) is True
        assert task.cancelled()
        assert manager.closed

    @pytest.mark.asyncio
    async def test_no_new_tasks_after_shutdown(self):
        manager = AsyncTaskManager("Test")
        await manager.shutdown()

        coro = asyncio.sleep(0)
        with pytest.raises(RuntimeError):
            manager.create(coro, name="late")
        coro.close()
