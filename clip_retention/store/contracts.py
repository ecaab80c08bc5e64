"""Collaborator contracts consumed by the retention engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable


@dataclass(slots=True, frozen=True)
class DeletionAuditEntry:
    filename: str
    deleted_at: datetime


@runtime_checkable
class LockSource(Protocol):
    """Read-only view of reviewer locks. The engine never writes locks."""

    def get_locked_clip_paths(self) -> set[str]: ...


@runtime_checkable
class DeletionAuditLog(Protocol):
    """Append-only log of deletions performed by the engine.

    Implementations may also provide ``has_deletion_record(filename) -> bool``;
    the executor uses it to avoid writing duplicate entries.
    """

    def record_deletion(self, filename: str) -> None: ...


__all__ = ["DeletionAuditEntry", "DeletionAuditLog", "LockSource"]
