"""Apply reviewer locks to a scan snapshot."""

from __future__ import annotations

import os
from collections import Counter
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from .errors import PathLike
from .records import ClipRecord, normalize_clip_path
from .scanner import ScanResult


@dataclass(slots=True, frozen=True)
class LockedInventory:
    """Scan population with lock flags applied.

    ``records`` is the whole population (locked clips included, since they
    always survive and count toward species quotas); ``eligible`` holds only
    the unlocked records that policies may consider.
    """

    records: tuple[ClipRecord, ...]
    eligible: tuple[ClipRecord, ...]
    locked_count: int
    unmatched_locks: int

    def species_counts(self) -> Counter:
        return Counter(record.species for record in self.records)

    def locked_paths(self) -> frozenset[str]:
        return frozenset(record.path for record in self.records if record.locked)


def _normalize_lock_path(path: PathLike, root: Optional[str]) -> str:
    text = os.fspath(path)
    if root and not os.path.isabs(text):
        text = os.path.join(root, text)
    return normalize_clip_path(text)


def apply_locks(
    scan: ScanResult,
    locked_paths: Iterable[PathLike],
    *,
    root: Optional[PathLike] = None,
) -> LockedInventory:
    """Mark records whose path is locked and split off the eligible set.

    Relative lock paths are resolved against ``root`` (defaults to the scan
    root). Locks that match no scanned record are ignored.
    """

    base = os.fspath(root) if root is not None else scan.root
    normalized = {_normalize_lock_path(path, base) for path in locked_paths if path}

    marked: list[ClipRecord] = []
    matched: set[str] = set()
    for record in scan.records:
        if record.path in normalized:
            matched.add(record.path)
            marked.append(replace(record, locked=True))
        else:
            marked.append(record)

    eligible = tuple(record for record in marked if not record.locked)
    return LockedInventory(
        records=tuple(marked),
        eligible=eligible,
        locked_count=len(matched),
        unmatched_locks=len(normalized - matched),
    )


__all__ = ["LockedInventory", "apply_locks"]
