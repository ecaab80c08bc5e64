"""Tracking and cancellation of the scheduler's background asyncio tasks."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import Optional

from clip_retention.core.logging_utils import LoggerLike, ensure_structured_logger


class AsyncTaskManager:
    """Owns named background tasks; logs how each one ended and cancels stragglers on shutdown."""

    def __init__(self, name: Optional[str] = None, logger: LoggerLike = None) -> None:
        self._name = name or self.__class__.__name__
        self._logger = ensure_structured_logger(logger, fallback_name=self._name)
        self._closed = False
        self._started: dict[asyncio.Task, float] = {}

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> list[str]:
        return [task.get_name() for task in self._started if not task.done()]

    def create(self, coro: Awaitable, *, name: str) -> asyncio.Task:
        if self._closed:
            raise RuntimeError(f"{self._name} is shutting down; no new tasks permitted")

        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._started[task] = time.perf_counter()
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        started = self._started.pop(task, None)
        if task.cancelled():
            outcome = "cancelled"
        elif task.exception() is not None:
            exc = task.exception()
            self._logger.error("%s task %s failed: %s", self._name, task.get_name(), exc, exc_info=exc)
            outcome = f"error:{exc.__class__.__name__}"
        else:
            outcome = "completed"
        elapsed_ms = (time.perf_counter() - started) * 1000 if started is not None else 0.0
        self._logger.debug("%s task %s %s after %.1fms", self._name, task.get_name(), outcome, elapsed_ms)

    async def shutdown(self, *, timeout: float = 5.0) -> bool:
        """Cancel whatever is still running; False if something outlived ``timeout``."""

        self._closed = True
        outstanding = [task for task in self._started if not task.done()]
        if not outstanding:
            return True

        for task in outstanding:
            task.cancel()

        try:
            await asyncio.wait_for(asyncio.gather(*outstanding, return_exceptions=True), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            self._logger.warning(
                "%s shutdown timed out after %.1fs; still pending: %s",
                self._name,
                timeout,
                ", ".join(self.pending()),
            )
            return False


__all__ = ["AsyncTaskManager"]
