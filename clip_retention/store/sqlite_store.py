"""SQLite-backed lock source and deletion audit log."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from clip_retention.core.logging_utils import get_module_logger

from .contracts import DeletionAuditEntry


_SCHEMA = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS clip_locks (
    clip_path TEXT PRIMARY KEY,
    locked_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS deletion_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    filename TEXT NOT NULL,
    deleted_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_deletion_log_filename ON deletion_log(filename);
"""

logger = get_module_logger("SQLiteStore")


class SQLiteRetentionStore:
    """Reference collaborator used by the command line.

    ``clip_locks`` is owned by the review subsystem; this class only reads it.
    ``deletion_log`` is append-only.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, timeout=10.0)
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize(self) -> None:
        conn = self._connect()
        try:
            conn.executescript(_SCHEMA)
            conn.commit()
        finally:
            conn.close()
        logger.debug("Retention store ready at %s", self._path)

    # ------------------------------------------------------------------
    # LockSource

    def get_locked_clip_paths(self) -> set[str]:
        conn = self._connect()
        try:
            rows = conn.execute("SELECT clip_path FROM clip_locks").fetchall()
        finally:
            conn.close()
        return {row["clip_path"] for row in rows}

    def lock_clip(self, clip_path: str) -> None:
        conn = self._connect()
        try:
            conn.execute(
                "INSERT OR IGNORE INTO clip_locks (clip_path, locked_at) VALUES (?, ?)",
                (clip_path, _now_iso()),
            )
            conn.commit()
        finally:
            conn.close()

    def unlock_clip(self, clip_path: str) -> None:
        conn = self._connect()
        try:
            conn.execute("DELETE FROM clip_locks WHERE clip_path = ?", (clip_path,))
            conn.commit()
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # DeletionAuditLog

    def record_deletion(self, filename: str) -> None:
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO deletion_log (filename, deleted_at) VALUES (?, ?)",
                (filename, _now_iso()),
            )
            conn.commit()
        finally:
            conn.close()

    def has_deletion_record(self, filename: str) -> bool:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT 1 FROM deletion_log WHERE filename = ? LIMIT 1", (filename,)
            ).fetchone()
        finally:
            conn.close()
        return row is not None

    def list_deletions(self, limit: Optional[int] = 50) -> list[DeletionAuditEntry]:
        """Most recent audit entries first."""
        query = "SELECT filename, deleted_at FROM deletion_log ORDER BY id DESC"
        params: tuple = ()
        if limit is not None and limit > 0:
            query += " LIMIT ?"
            params = (limit,)
        conn = self._connect()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()
        return [
            DeletionAuditEntry(filename=row["filename"], deleted_at=datetime.fromisoformat(row["deleted_at"]))
            for row in rows
        ]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


__all__ = ["SQLiteRetentionStore"]
