from .contracts import DeletionAuditEntry, DeletionAuditLog, LockSource
from .sqlite_store import SQLiteRetentionStore

__all__ = ["DeletionAuditEntry", "DeletionAuditLog", "LockSource", "SQLiteRetentionStore"]
