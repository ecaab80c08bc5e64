"""Background scheduling of eviction passes.

Passes run on a fixed interval, on demand via ``trigger()``, and (in usage
mode) whenever the disk monitor sees free space below the configured ratio.
Triggers that arrive while a pass is running collapse into one follow-up
pass; passes never overlap. After a pass that could not reach the target,
the monitor waits for free space to drop further before rescanning.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from clip_retention.core.logging_utils import LoggerLike, ensure_structured_logger
from clip_retention.core.task_manager import AsyncTaskManager

from .disk import DiskUsage
from .engine import PassSummary, RetentionEngine
from .errors import PassInProgressError, RetentionError
from .policies import RetentionMode


class RetentionScheduler:
    def __init__(
        self,
        engine: RetentionEngine,
        *,
        interval: Optional[float] = None,
        disk_check_interval: Optional[float] = None,
        logger: LoggerLike = None,
    ) -> None:
        self.engine = engine
        self._interval = max(0.01, interval if interval is not None else engine.settings.pass_interval_sec)
        self._disk_interval = max(
            0.01,
            disk_check_interval if disk_check_interval is not None else engine.settings.disk_check_interval_sec,
        )
        self.logger = ensure_structured_logger(logger, fallback_name="Scheduler")
        self.shutdown_event = asyncio.Event()
        self._trigger = asyncio.Event()
        self._cancel_event = asyncio.Event()
        self._tasks = AsyncTaskManager("RetentionScheduler", logger=self.logger)
        self._loop_task: Optional[asyncio.Task] = None
        self._pending_reason: Optional[str] = None
        self.passes_run = 0
        self.last_summary: Optional[PassSummary] = None
        self._stalled_summary: Optional[PassSummary] = None
        self._stalled_free_bytes = 0

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def start(self) -> None:
        if self.running:
            return
        self.shutdown_event.clear()
        self._cancel_event.clear()
        self.trigger("startup")
        self._loop_task = self._tasks.create(self._run_loop(), name="retention-loop")
        if self.engine.settings.retention_mode is RetentionMode.USAGE:
            self._tasks.create(self._monitor_disk(), name="disk-monitor")
        self.logger.info(
            "Scheduler started: mode=%s interval=%.0fs",
            self.engine.settings.retention_mode.value,
            self._interval,
        )

    def trigger(self, reason: str = "manual") -> None:
        """Request a pass as soon as the current one (if any) finishes."""
        if self._pending_reason is None:
            self._pending_reason = reason
        self._trigger.set()

    def stop(self) -> None:
        """Ask the loops to exit and a running pass to stop between files."""
        self.shutdown_event.set()
        self._cancel_event.set()
        self._trigger.set()

    async def shutdown(self, *, timeout: float = 10.0) -> None:
        if self._tasks.closed:
            return
        self.logger.info("Scheduler stopping")
        self.stop()

        if self._loop_task is not None and not self._loop_task.done():
            done, _ = await asyncio.wait({self._loop_task}, timeout=timeout)
            if not done:
                self.logger.warning("Retention loop did not stop within %.1fs; cancelling", timeout)
        await self._tasks.shutdown(timeout=max(1.0, timeout / 2))

    async def run_forever(self) -> None:
        await self.start()
        await self.shutdown_event.wait()
        await self.shutdown()

    # ------------------------------------------------------------------
    # Internal loops

    async def _run_loop(self) -> None:
        while not self.shutdown_event.is_set():
            try:
                await asyncio.wait_for(self._trigger.wait(), timeout=self._interval)
                reason = self._pending_reason or "trigger"
            except asyncio.TimeoutError:
                reason = "interval"

            if self.shutdown_event.is_set():
                break

            self._trigger.clear()
            self._pending_reason = None
            await self._run_pass(reason)

    async def _run_pass(self, reason: str) -> None:
        self.logger.debug("Running pass (reason=%s)", reason)
        try:
            summary = await self.engine.run_pass(cancel_event=self._cancel_event)
        except PassInProgressError:
            self.logger.debug("Pass already in progress; skipping %s trigger", reason)
            return
        except RetentionError as exc:
            self.logger.error("Retention pass aborted before deleting anything: %s", exc)
            return
        except Exception:
            self.logger.exception("Retention pass failed unexpectedly")
            return
        self.passes_run += 1
        self.last_summary = summary

    def _pressure_unchanged(self, usage: DiskUsage) -> bool:
        """True while the last pass fell short and free space has not dropped since."""
        summary = self.last_summary
        if summary is None or not summary.shortfall_bytes:
            return False
        if summary is not self._stalled_summary:
            self._stalled_summary = summary
            self._stalled_free_bytes = usage.free_bytes
            return True
        return usage.free_bytes >= self._stalled_free_bytes

    def _on_pressure(self, usage: DiskUsage, ratio: float) -> None:
        if self._pressure_unchanged(usage):
            self.logger.debug(
                "Disk pressure unchanged since a pass fell %d bytes short; not rescanning",
                self.last_summary.shortfall_bytes,
            )
            return
        self.logger.info(
            "Disk pressure: free %.1f%% below target %.1f%%",
            usage.free_ratio * 100,
            ratio * 100,
        )
        self.trigger("disk-pressure")

    async def _monitor_disk(self) -> None:
        ratio = self.engine.settings.min_free_space_ratio
        while not self.shutdown_event.is_set():
            try:
                usage = await self.engine.read_disk_usage()
            except RetentionError as exc:
                self.logger.warning("Disk check failed: %s", exc)
            else:
                if not usage.meets(ratio) and not self.engine.running:
                    self._on_pressure(usage, ratio)
            try:
                await asyncio.wait_for(self.shutdown_event.wait(), timeout=self._disk_interval)
            except asyncio.TimeoutError:
                continue


__all__ = ["RetentionScheduler"]
