"""Deletion executor with per-file isolation and audit trail."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from clip_retention.core.logging_utils import LoggerLike, ensure_structured_logger
from clip_retention.store.contracts import DeletionAuditLog

from .errors import DeleteFailedError
from .records import ClipRecord


@dataclass(slots=True)
class ExecutionResult:
    deleted: list[str] = field(default_factory=list)
    failed: dict[str, DeleteFailedError] = field(default_factory=dict)
    already_gone: list[str] = field(default_factory=list)
    audit_failures: dict[str, str] = field(default_factory=dict)
    skipped_locked: int = 0
    not_attempted: int = 0
    freed_bytes: int = 0
    cancelled: bool = False
    dry_run: bool = False

    @property
    def deleted_count(self) -> int:
        return len(self.deleted)

    @property
    def failed_count(self) -> int:
        return len(self.failed)


class DeletionExecutor:
    """Remove clips one at a time; one bad file never stops the batch."""

    def __init__(
        self,
        audit_log: DeletionAuditLog,
        *,
        dry_run: bool = False,
        logger: LoggerLike = None,
        remove: Callable[[str], None] = os.remove,
    ) -> None:
        self._audit_log = audit_log
        self._dry_run = dry_run
        self._remove = remove
        self._logger = ensure_structured_logger(logger, fallback_name="Executor")

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    async def execute(
        self,
        records: Sequence[ClipRecord],
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ExecutionResult:
        result = ExecutionResult(dry_run=self._dry_run)

        for index, record in enumerate(records):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                result.not_attempted = len(records) - index
                self._logger.info("Deletion batch cancelled; %d clip(s) left for the next pass", result.not_attempted)
                break

            if record.locked:
                # Should never reach here; the lock filter runs first.
                result.skipped_locked += 1
                self._logger.error("Refusing to delete locked clip %s", record.path)
                continue

            if self._dry_run:
                result.deleted.append(record.path)
                result.freed_bytes += record.size_bytes
                self._logger.info("[dry-run] would delete %s", record.path)
                continue

            try:
                await asyncio.to_thread(self._remove, record.path)
            except FileNotFoundError:
                result.already_gone.append(record.path)
                self._logger.debug("Clip already removed: %s", record.path)
                continue
            except OSError as exc:
                error = DeleteFailedError(record.path, exc)
                result.failed[record.path] = error
                self._logger.warning("%s", error)
                continue

            result.deleted.append(record.path)
            result.freed_bytes += record.size_bytes
            self._logger.debug("Deleted %s (%d bytes)", record.path, record.size_bytes)

            audit_error = await self._audit(record.path)
            if audit_error:
                result.audit_failures[record.path] = audit_error

        return result

    async def _audit(self, filename: str) -> Optional[str]:
        """Append one audit entry; return an error message instead of raising."""
        has_record = getattr(self._audit_log, "has_deletion_record", None)
        try:
            if has_record is not None and await asyncio.to_thread(has_record, filename):
                self._logger.debug("Audit entry already present for %s", filename)
                return None
            await asyncio.to_thread(self._audit_log.record_deletion, filename)
        except Exception as exc:
            self._logger.error("Deleted %s but could not record audit entry: %s", filename, exc)
            return str(exc)
        return None


__all__ = ["DeletionExecutor", "ExecutionResult"]
