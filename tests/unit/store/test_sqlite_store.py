"""Unit tests for the SQLite lock source and audit log."""

import sqlite3
from datetime import timezone

import pytest

from clip_retention.store import DeletionAuditLog, LockSource, SQLiteRetentionStore


@pytest.fixture
def store(tmp_path):
    return SQLiteRetentionStore(tmp_path / "state" / "retention.db")


class TestSQLiteRetentionStore:
    def test_creates_database_and_parent_directory(self, tmp_path, store):
        assert (tmp_path / "state" / "retention.db").exists()
        assert store.path == tmp_path / "state" / "retention.db"

    def test_satisfies_collaborator_protocols(self, store):
        assert isinstance(store, LockSource)
        assert isinstance(store, DeletionAuditLog)

    def test_locks_round_trip(self, store):
        assert store.get_locked_clip_paths() == set()

        store.lock_clip("/clips/owl_80p_20240101T000000Z.wav")
        store.lock_clip("/clips/owl_80p_20240101T000000Z.wav")
        store.lock_clip("/clips/duck_70p_20240101T000000Z.wav")
        store.unlock_clip("/clips/duck_70p_20240101T000000Z.wav")

        assert store.get_locked_clip_paths() == {"/clips/owl_80p_20240101T000000Z.wav"}

    def test_locks_written_by_another_connection_are_visible(self, tmp_path, store):
        conn = sqlite3.connect(tmp_path / "state" / "retention.db")
        conn.execute(
            "INSERT INTO clip_locks (clip_path, locked_at) VALUES (?, ?)",
            ("/clips/reviewed.wav", "2024-01-01T00:00:00+00:00"),
        )
        conn.commit()
        conn.close()

        assert store.get_locked_clip_paths() == {"/clips/reviewed.wav"}

    def test_record_and_list_deletions(self, store):
        store.record_deletion("/clips/a.wav")
        store.record_deletion("/clips/b.wav")

        entries = store.list_deletions()

        assert [entry.filename for entry in entries] == ["/clips/b.wav", "/clips/a.wav"]
        assert all(entry.deleted_at.tzinfo == timezone.utc for entry in entries)

    def test_list_deletions_limit(self, store):
        for index in range(5):
            store.record_deletion(f"/clips/{index}.wav")

        assert len(store.list_deletions(limit=2)) == 2
        assert len(store.list_deletions(limit=None)) == 5

    def test_has_deletion_record(self, store):
        assert store.has_deletion_record("/clips/a.wav") is False

        store.record_deletion("/clips/a.wav")

        assert store.has_deletion_record("/clips/a.wav") is True

    def test_reopening_keeps_data(self, tmp_path, store):
        store.record_deletion("/clips/a.wav")

        reopened = SQLiteRetentionStore(tmp_path / "state" / "retention.db")

        assert reopened.has_deletion_record("/clips/a.wav")
