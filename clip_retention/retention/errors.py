"""Error taxonomy for the retention engine.

Per-file errors (parse, stat, delete) are collected into pass results and
never abort a pass. Pass-level errors (configuration, scan root, lock query,
overlapping pass) abort the pass before any file is removed.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

PathLike = Union[str, Path]


class RetentionError(Exception):
    """Base class for every error raised by the retention engine."""


class ConfigurationError(RetentionError):
    """Settings are missing, malformed or out of range."""


# ---------------------------------------------------------------------------
# Per-file errors


class ParseError(RetentionError):
    """A file could not be turned into a clip record."""

    def __init__(self, path: PathLike, message: str) -> None:
        self.path = str(path)
        super().__init__(f"{message}: {self.path}")


class FileTypeNotEligibleError(ParseError):
    """The extension is not on the audio allow-list."""

    def __init__(self, path: PathLike, extension: str) -> None:
        self.extension = extension
        super().__init__(path, f"file type not eligible ({extension or 'no extension'})")


class MalformedFilenameError(ParseError):
    """The filename does not follow ``species_NNp_YYYYMMDDTHHMMSSZ.ext``."""

    def __init__(self, path: PathLike, reason: str) -> None:
        self.reason = reason
        super().__init__(path, f"malformed clip filename ({reason})")


class StatFailedError(RetentionError):
    """Filesystem metadata could not be read for a file or directory."""

    def __init__(self, path: PathLike, cause: OSError) -> None:
        self.path = str(path)
        self.cause = cause
        super().__init__(f"stat failed for {self.path}: {cause}")


class DeleteFailedError(RetentionError):
    """Removing a clip failed with an I/O error."""

    def __init__(self, path: PathLike, cause: OSError) -> None:
        self.path = str(path)
        self.cause = cause
        super().__init__(f"delete failed for {self.path}: {cause}")


# ---------------------------------------------------------------------------
# Pass-level errors


class QuotaUnsatisfiableError(RetentionError):
    """The usage target cannot be reached without breaking species quotas.

    Carried as a warning in decisions and summaries; never raised by a pass.
    """

    def __init__(self, shortfall_bytes: int, protected: int) -> None:
        self.shortfall_bytes = shortfall_bytes
        self.protected = protected
        super().__init__(
            f"free space target unreachable: {shortfall_bytes} bytes short "
            f"after {protected} clip(s) were protected by species quotas"
        )


class ScanRootUnavailableError(RetentionError):
    """The capture directory is missing or unreadable."""

    def __init__(self, root: PathLike, cause: Optional[BaseException] = None) -> None:
        self.root = str(root)
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"scan root unavailable {self.root}{detail}")


class LockQueryError(RetentionError):
    """The review subsystem could not report which clips are locked."""


class PassInProgressError(RetentionError):
    """Another eviction pass is still running."""


__all__ = [
    "RetentionError",
    "ConfigurationError",
    "ParseError",
    "FileTypeNotEligibleError",
    "MalformedFilenameError",
    "StatFailedError",
    "DeleteFailedError",
    "QuotaUnsatisfiableError",
    "ScanRootUnavailableError",
    "LockQueryError",
    "PassInProgressError",
]
