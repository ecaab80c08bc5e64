"""Shared pytest fixtures for the clip retention test suite."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from clip_retention.retention.records import ClipRecord, format_clip_filename, normalize_clip_path


NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Collaborator fakes
# =============================================================================

class FakeLockSource:
    """In-memory lock source; set ``error`` to make the query fail."""

    def __init__(self, paths=(), error: Optional[Exception] = None) -> None:
        self.paths = {str(path) for path in paths}
        self.error = error
        self.calls = 0

    def get_locked_clip_paths(self) -> set[str]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return set(self.paths)


class FakeAuditLog:
    """In-memory audit log with the optional idempotency check."""

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.entries: list[str] = []
        self.error = error

    def record_deletion(self, filename: str) -> None:
        if self.error is not None:
            raise self.error
        self.entries.append(filename)

    def has_deletion_record(self, filename: str) -> bool:
        return filename in self.entries


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clip_root(tmp_path: Path) -> Path:
    root = tmp_path / "clips"
    root.mkdir()
    return root


@pytest.fixture
def make_clip(clip_root: Path) -> Callable[..., Path]:
    """Create a clip file named after its species and capture time."""

    def _make(
        species: str = "owl",
        age: timedelta = timedelta(days=1),
        *,
        confidence: int = 80,
        extension: str = ".wav",
        size: int = 1000,
        directory: Optional[Path] = None,
        now: datetime = NOW,
    ) -> Path:
        target_dir = directory or clip_root
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / format_clip_filename(species, confidence, now - age, extension)
        path.write_bytes(b"\0" * size)
        return path

    return _make


@pytest.fixture
def make_record(tmp_path: Path) -> Callable[..., ClipRecord]:
    """Build an in-memory ClipRecord without touching the filesystem."""

    def _make(
        species: str = "owl",
        age: timedelta = timedelta(days=1),
        *,
        size: int = 1000,
        locked: bool = False,
        confidence: int = 80,
        now: datetime = NOW,
    ) -> ClipRecord:
        captured_at = now - age
        name = format_clip_filename(species, confidence, captured_at)
        return ClipRecord(
            path=normalize_clip_path(tmp_path / "clips" / name),
            species=species,
            confidence=confidence,
            captured_at=captured_at,
            size_bytes=size,
            locked=locked,
        )

    return _make


@pytest.fixture
def lock_source() -> FakeLockSource:
    return FakeLockSource()


@pytest.fixture
def audit_log() -> FakeAuditLog:
    return FakeAuditLog()

