"""One eviction pass: scan, apply locks, select, guard quotas, execute."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from clip_retention.core.logging_utils import LoggerLike, ensure_structured_logger
from clip_retention.store.contracts import DeletionAuditLog, LockSource

from .disk import DiskProbe, DiskUsage, probe_disk_usage, read_disk_usage
from .errors import LockQueryError, PassInProgressError, QuotaUnsatisfiableError
from .executor import DeletionExecutor, ExecutionResult
from .locks import LockedInventory, apply_locks
from .policies import (
    REASON_AGE,
    REASON_USAGE,
    RetentionDecision,
    RetentionMode,
    select_by_age,
    select_by_usage,
)
from .quota import QuotaGuard
from .records import ClipRecord
from .scanner import ScanResult, scan_inventory
from .settings import RetentionSettings

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class PassPlan:
    """Everything a pass decided before touching the filesystem."""

    now: datetime
    scan: ScanResult
    inventory: LockedInventory
    decision: RetentionDecision
    batch: tuple[ClipRecord, ...]
    usage: Optional[DiskUsage] = None


@dataclass(slots=True)
class PassSummary:
    mode: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    scanned: int = 0
    parse_errors: int = 0
    candidates: int = 0
    deleted: int = 0
    failed: int = 0
    already_gone: int = 0
    skipped_locked: int = 0
    skipped_quota: int = 0
    deferred: int = 0
    freed_bytes: int = 0
    shortfall_bytes: int = 0
    dry_run: bool = False
    cancelled: bool = False
    failures: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "mode": self.mode,
            "started_at": self.started_at.isoformat(),
            "scanned": self.scanned,
            "parse_errors": self.parse_errors,
            "candidates": self.candidates,
            "deleted": self.deleted,
            "failed": self.failed,
            "already_gone": self.already_gone,
            "skipped_locked": self.skipped_locked,
            "skipped_quota": self.skipped_quota,
            "deferred": self.deferred,
            "freed_bytes": self.freed_bytes,
            "shortfall_bytes": self.shortfall_bytes,
            "dry_run": self.dry_run,
            "cancelled": self.cancelled,
            "failures": dict(self.failures),
            "warnings": list(self.warnings),
        }
        if self.completed_at:
            data["completed_at"] = self.completed_at.isoformat()
        return data


class RetentionEngine:
    """Runs eviction passes; at most one at a time."""

    def __init__(
        self,
        settings: RetentionSettings,
        lock_source: LockSource,
        audit_log: DeletionAuditLog,
        *,
        clock: Optional[Clock] = None,
        disk_probe: Optional[DiskProbe] = None,
        logger: LoggerLike = None,
    ) -> None:
        self.settings = settings
        self._lock_source = lock_source
        self._audit_log = audit_log
        self._clock = clock or utc_now
        self._disk_probe = disk_probe or read_disk_usage
        self.logger = ensure_structured_logger(logger, fallback_name="Engine")
        self._guard = QuotaGuard(
            settings.min_clips_per_species,
            settings.species_min_overrides,
            settings.quota_trim_order,
        )
        self._executor = DeletionExecutor(
            audit_log,
            dry_run=settings.dry_run,
            logger=self.logger.getChild("Executor"),
        )
        self._pass_lock = asyncio.Lock()
        self.last_summary: Optional[PassSummary] = None

    @property
    def running(self) -> bool:
        return self._pass_lock.locked()

    @property
    def guard(self) -> QuotaGuard:
        return self._guard

    async def read_disk_usage(self) -> DiskUsage:
        return await probe_disk_usage(self.settings.scan_root, self._disk_probe)

    # ------------------------------------------------------------------
    # Planning

    async def plan(self, now: Optional[datetime] = None) -> PassPlan:
        """Scan and decide without deleting anything."""

        now = now or self._clock()
        settings = self.settings

        scan = await asyncio.to_thread(
            scan_inventory,
            settings.scan_root,
            settings.allowed_extensions,
            logger=self.logger.getChild("Scanner"),
        )

        try:
            locked_paths = await asyncio.to_thread(self._lock_source.get_locked_clip_paths)
        except Exception as exc:
            raise LockQueryError(f"could not read locked clip paths: {exc}") from exc

        inventory = apply_locks(scan, locked_paths)
        if inventory.unmatched_locks:
            self.logger.debug("%d locked path(s) not present in scan", inventory.unmatched_locks)

        decision = RetentionDecision(mode=settings.retention_mode)
        usage: Optional[DiskUsage] = None

        if settings.retention_mode is RetentionMode.AGE:
            proposed = select_by_age(inventory.eligible, settings.max_age, now)
            reason = REASON_AGE
            decision.skipped_locked = sum(
                1 for record in inventory.records if record.locked and record.captured_at < now - settings.max_age
            )
        elif settings.retention_mode is RetentionMode.USAGE:
            usage = await self.read_disk_usage()
            selection = select_by_usage(
                inventory.eligible,
                usage,
                settings.min_free_space_ratio,
                budget=self._guard.budget(inventory.records),
            )
            proposed = list(selection.selected)
            reason = REASON_USAGE
            decision.skipped_locked = inventory.locked_count if selection.triggered else 0
            decision.skipped_quota = selection.skipped_quota
            decision.shortfall_bytes = selection.shortfall_bytes
            if selection.shortfall_bytes and selection.skipped_quota:
                warning = QuotaUnsatisfiableError(selection.shortfall_bytes, selection.skipped_quota)
                decision.warnings.append(warning)
                self.logger.warning("%s", warning)
            elif selection.shortfall_bytes:
                self.logger.warning(
                    "Free space target unreachable: %d bytes short with %d locked clip(s) kept",
                    selection.shortfall_bytes,
                    inventory.locked_count,
                )
        else:
            proposed = []
            reason = ""

        guarded = self._guard.enforce(proposed, inventory.records)
        decision.skipped_quota += guarded.vetoed_count

        approved = list(guarded.approved)
        cap = settings.max_deletions_per_pass
        if cap and len(approved) > cap:
            decision.deferred = len(approved) - cap
            approved = approved[:cap]

        decision.to_delete = tuple(record.path for record in approved)
        decision.reasons = {record.path: reason for record in approved}

        return PassPlan(
            now=now,
            scan=scan,
            inventory=inventory,
            decision=decision,
            batch=tuple(approved),
            usage=usage,
        )

    # ------------------------------------------------------------------
    # Execution

    async def run_pass(self, cancel_event: Optional[asyncio.Event] = None) -> PassSummary:
        """Run one complete eviction pass.

        Raises:
            PassInProgressError: another pass has not finished yet.
            ScanRootUnavailableError: the capture directory is unusable.
            LockQueryError: lock state could not be read.
        """

        if self._pass_lock.locked():
            raise PassInProgressError("an eviction pass is already running")

        async with self._pass_lock:
            now = self._clock()
            summary = PassSummary(
                mode=self.settings.retention_mode.value,
                started_at=now,
                dry_run=self.settings.dry_run,
            )
            self.logger.debug("Starting %s pass over %s", summary.mode, self.settings.scan_root)

            plan = await self.plan(now)
            decision = plan.decision
            summary.scanned = len(plan.scan.records)
            summary.parse_errors = len(plan.scan.errors)
            summary.candidates = decision.candidate_count
            summary.skipped_locked = decision.skipped_locked
            summary.skipped_quota = decision.skipped_quota
            summary.deferred = decision.deferred
            summary.shortfall_bytes = decision.shortfall_bytes
            summary.warnings = [str(warning) for warning in decision.warnings]

            result = await self._executor.execute(plan.batch, cancel_event=cancel_event)
            self._merge_execution(summary, result)
            summary.completed_at = utc_now()

            self.last_summary = summary
            self._log_summary(summary)
            return summary

    @staticmethod
    def _merge_execution(summary: PassSummary, result: ExecutionResult) -> None:
        summary.deleted = result.deleted_count
        summary.failed = result.failed_count
        summary.already_gone = len(result.already_gone)
        summary.skipped_locked += result.skipped_locked
        summary.freed_bytes = result.freed_bytes
        summary.cancelled = result.cancelled
        summary.deferred += result.not_attempted
        summary.failures = {path: str(error) for path, error in result.failed.items()}
        for path, message in result.audit_failures.items():
            summary.warnings.append(f"audit entry missing for {path}: {message}")

    def _log_summary(self, summary: PassSummary) -> None:
        self.logger.info(
            "%s pass%s: scanned=%d candidates=%d deleted=%d failed=%d already_gone=%d "
            "skipped_locked=%d skipped_quota=%d deferred=%d freed=%.1fMB%s",
            summary.mode,
            " (dry-run)" if summary.dry_run else "",
            summary.scanned,
            summary.candidates,
            summary.deleted,
            summary.failed,
            summary.already_gone,
            summary.skipped_locked,
            summary.skipped_quota,
            summary.deferred,
            summary.freed_bytes / 1e6,
            " cancelled" if summary.cancelled else "",
        )


__all__ = ["PassPlan", "PassSummary", "RetentionEngine", "utc_now"]
