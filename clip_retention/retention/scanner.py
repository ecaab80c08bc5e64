"""Read-only inventory of the capture directory."""

from __future__ import annotations

import os
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Iterator

from clip_retention.core.logging_utils import LoggerLike, ensure_structured_logger

from .errors import (
    FileTypeNotEligibleError,
    MalformedFilenameError,
    ParseError,
    PathLike,
    RetentionError,
    ScanRootUnavailableError,
    StatFailedError,
)
from .extensions import DEFAULT_EXTENSIONS, AudioExtension
from .records import ClipRecord, check_extension, normalize_clip_path, parse_clip_file


@dataclass(slots=True, frozen=True)
class ScanResult:
    """Immutable snapshot produced by one scan."""

    root: str
    records: tuple[ClipRecord, ...]
    errors: tuple[tuple[str, RetentionError], ...] = ()
    scanned_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def species_counts(self) -> Counter:
        return Counter(record.species for record in self.records)

    @property
    def ineligible_count(self) -> int:
        return sum(1 for _, err in self.errors if isinstance(err, FileTypeNotEligibleError))

    @property
    def malformed_count(self) -> int:
        return sum(1 for _, err in self.errors if isinstance(err, MalformedFilenameError))

    @property
    def total_bytes(self) -> int:
        return sum(record.size_bytes for record in self.records)


def _walk_files(root: str, errors: list[tuple[str, RetentionError]]) -> Iterator[os.DirEntry]:
    """Yield regular files below ``root`` without following symlinks."""

    pending = [root]
    while pending:
        directory = pending.pop()
        try:
            with os.scandir(directory) as entries:
                listing = sorted(entries, key=lambda entry: entry.name)
        except OSError as exc:
            if directory == root:
                raise ScanRootUnavailableError(root, exc) from exc
            errors.append((directory, StatFailedError(directory, exc)))
            continue

        subdirs = []
        for entry in listing:
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(entry.path)
                elif entry.is_file(follow_symlinks=False):
                    yield entry
            except OSError as exc:
                errors.append((entry.path, StatFailedError(entry.path, exc)))
        pending.extend(reversed(subdirs))


def scan_inventory(
    root: PathLike,
    allowed_extensions: Iterable[AudioExtension] = DEFAULT_EXTENSIONS,
    *,
    logger: LoggerLike = None,
) -> ScanResult:
    """Walk ``root`` and parse every eligible clip.

    Per-entry failures are collected in ``ScanResult.errors`` and never stop
    the scan. Only a missing or unreadable root is fatal.

    Raises:
        ScanRootUnavailableError: ``root`` does not exist, is not a
            directory, or cannot be listed.
    """

    log = ensure_structured_logger(logger, fallback_name="Scanner")
    allowed = tuple(allowed_extensions)
    root_path = normalize_clip_path(root)

    if not os.path.isdir(root_path):
        raise ScanRootUnavailableError(root_path, FileNotFoundError(f"not a directory: {root_path}"))

    records: list[ClipRecord] = []
    errors: list[tuple[str, RetentionError]] = []

    for entry in _walk_files(root_path, errors):
        path = entry.path
        try:
            check_extension(path, allowed)
        except FileTypeNotEligibleError as exc:
            log.debug("Skipping %s", exc)
            errors.append((path, exc))
            continue

        try:
            stat_result = entry.stat(follow_symlinks=False)
        except OSError as exc:
            error = StatFailedError(path, exc)
            log.warning("%s", error)
            errors.append((path, error))
            continue

        try:
            records.append(parse_clip_file(path, stat_result, allowed))
        except ParseError as exc:
            log.warning("Leaving file untouched: %s", exc)
            errors.append((path, exc))

    records.sort(key=lambda record: record.path)
    result = ScanResult(root=root_path, records=tuple(records), errors=tuple(errors))
    log.debug(
        "Scanned %s: %d clip(s), %d ineligible, %d malformed, %d other error(s)",
        root_path,
        len(result.records),
        result.ineligible_count,
        result.malformed_count,
        len(result.errors) - result.ineligible_count - result.malformed_count,
    )
    return result


__all__ = ["ScanResult", "scan_inventory"]
