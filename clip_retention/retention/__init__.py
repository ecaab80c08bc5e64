"""Clip retention engine: scan, lock filter, policy, quota guard, delete."""

from .disk import DiskUsage, probe_disk_usage, read_disk_usage
from .engine import PassPlan, PassSummary, RetentionEngine
from .errors import (
    ConfigurationError,
    DeleteFailedError,
    FileTypeNotEligibleError,
    LockQueryError,
    MalformedFilenameError,
    ParseError,
    PassInProgressError,
    QuotaUnsatisfiableError,
    RetentionError,
    ScanRootUnavailableError,
    StatFailedError,
)
from .executor import DeletionExecutor, ExecutionResult
from .extensions import DEFAULT_EXTENSIONS, AudioExtension
from .locks import LockedInventory, apply_locks
from .policies import RetentionDecision, RetentionMode, select_by_age, select_by_usage
from .quota import QuotaGuard, TrimOrder
from .records import ClipRecord, format_clip_filename, parse_clip_file
from .scanner import ScanResult, scan_inventory
from .scheduler import RetentionScheduler
from .settings import RetentionSettings

__all__ = [
    "AudioExtension",
    "ClipRecord",
    "ConfigurationError",
    "DEFAULT_EXTENSIONS",
    "DeleteFailedError",
    "DeletionExecutor",
    "DiskUsage",
    "ExecutionResult",
    "FileTypeNotEligibleError",
    "LockQueryError",
    "LockedInventory",
    "MalformedFilenameError",
    "ParseError",
    "PassInProgressError",
    "PassPlan",
    "PassSummary",
    "QuotaGuard",
    "QuotaUnsatisfiableError",
    "RetentionDecision",
    "RetentionEngine",
    "RetentionError",
    "RetentionMode",
    "RetentionScheduler",
    "RetentionSettings",
    "ScanResult",
    "ScanRootUnavailableError",
    "StatFailedError",
    "TrimOrder",
    "apply_locks",
    "format_clip_filename",
    "parse_clip_file",
    "probe_disk_usage",
    "read_disk_usage",
    "scan_inventory",
    "select_by_age",
    "select_by_usage",
]
