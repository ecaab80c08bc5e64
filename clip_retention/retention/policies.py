"""Eviction policies.

Both policies are pure selections over the unlocked inventory. They never
delete anything and never look at locks; the quota guard and executor run
after them regardless of which one was active.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Optional

from .disk import DiskUsage
from .errors import ConfigurationError, RetentionError
from .quota import QuotaBudget
from .records import ClipRecord

REASON_AGE = "age"
REASON_USAGE = "usage"


class RetentionMode(str, Enum):
    AGE = "age"
    USAGE = "usage"
    NONE = "none"

    @classmethod
    def parse(cls, value: "str | RetentionMode") -> "RetentionMode":
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if member.value == text:
                return member
        raise ConfigurationError(
            f"retention_mode must be one of {', '.join(m.value for m in cls)} (got {value!r})"
        )


@dataclass(slots=True)
class RetentionDecision:
    """Outcome of running a policy and the quota guard over one snapshot."""

    mode: RetentionMode
    to_delete: tuple[str, ...] = ()
    reasons: dict[str, str] = field(default_factory=dict)
    skipped_locked: int = 0
    skipped_quota: int = 0
    deferred: int = 0
    shortfall_bytes: int = 0
    warnings: list[RetentionError] = field(default_factory=list)

    @property
    def candidate_count(self) -> int:
        return len(self.to_delete)


def oldest_first(records: Iterable[ClipRecord]) -> list[ClipRecord]:
    return sorted(records, key=ClipRecord.sort_key)


def select_by_age(records: Iterable[ClipRecord], max_age: timedelta, now: datetime) -> list[ClipRecord]:
    """Every record captured strictly before ``now - max_age``, oldest first."""

    if max_age <= timedelta(0):
        raise ConfigurationError("max_age must be a positive duration")
    cutoff = now - max_age
    return [record for record in oldest_first(records) if record.captured_at < cutoff]


@dataclass(slots=True, frozen=True)
class UsageSelection:
    triggered: bool
    selected: tuple[ClipRecord, ...]
    bytes_needed: int
    projected_free_bytes: int
    shortfall_bytes: int
    skipped_quota: int

    @property
    def freed_bytes(self) -> int:
        return sum(record.size_bytes for record in self.selected)


def select_by_usage(
    records: Iterable[ClipRecord],
    usage: DiskUsage,
    min_free_ratio: float,
    *,
    budget: Optional[QuotaBudget] = None,
) -> UsageSelection:
    """Pick the oldest clips until projected free space reaches the target.

    Nothing is selected while ``usage`` already meets ``min_free_ratio``.
    With a ``budget``, clips whose species has no deletable allowance left
    are passed over, so the result is the largest quota-respecting set when
    the target cannot be reached.
    """

    if not 0.0 < min_free_ratio < 1.0:
        raise ConfigurationError("min_free_space_ratio must be between 0 and 1")

    needed = usage.bytes_needed(min_free_ratio)
    if needed == 0:
        return UsageSelection(
            triggered=False,
            selected=(),
            bytes_needed=0,
            projected_free_bytes=usage.free_bytes,
            shortfall_bytes=0,
            skipped_quota=0,
        )

    selected: list[ClipRecord] = []
    freed = 0
    skipped_quota = 0
    for record in oldest_first(records):
        if freed >= needed:
            break
        if budget is not None and not budget.try_consume(record.species):
            skipped_quota += 1
            continue
        selected.append(record)
        freed += record.size_bytes

    return UsageSelection(
        triggered=True,
        selected=tuple(selected),
        bytes_needed=needed,
        projected_free_bytes=usage.free_bytes + freed,
        shortfall_bytes=max(0, needed - freed),
        skipped_quota=skipped_quota,
    )


__all__ = [
    "REASON_AGE",
    "REASON_USAGE",
    "RetentionDecision",
    "RetentionMode",
    "UsageSelection",
    "oldest_first",
    "select_by_age",
    "select_by_usage",
]
