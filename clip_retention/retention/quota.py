"""Per-species minimum retention guard.

The guard is the last step before deletion. Whatever a policy proposes, the
guard trims candidates until every species keeps at least its minimum number
of clips on disk. Locked clips count as survivors.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence

from .errors import ConfigurationError
from .records import ClipRecord


class TrimOrder(str, Enum):
    """Which over-quota candidates are spared first."""

    NEWEST_FIRST = "newest_first"
    OLDEST_FIRST = "oldest_first"

    @classmethod
    def parse(cls, value: "str | TrimOrder") -> "TrimOrder":
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower().replace("-", "_")
        for member in cls:
            if member.value == text:
                return member
        raise ConfigurationError(
            f"quota_trim_order must be one of {', '.join(m.value for m in cls)} (got {value!r})"
        )


def species_key(species: str) -> str:
    return species.strip().casefold()


class QuotaBudget:
    """Remaining number of clips each species may lose in this pass."""

    def __init__(self, allowances: Mapping[str, int]) -> None:
        self._remaining = {key: max(0, value) for key, value in allowances.items()}

    def remaining(self, species: str) -> int:
        return self._remaining.get(species_key(species), 0)

    def try_consume(self, species: str) -> bool:
        key = species_key(species)
        left = self._remaining.get(key, 0)
        if left <= 0:
            return False
        self._remaining[key] = left - 1
        return True


@dataclass(slots=True, frozen=True)
class QuotaResult:
    approved: tuple[ClipRecord, ...]
    vetoed: tuple[ClipRecord, ...]

    @property
    def vetoed_count(self) -> int:
        return len(self.vetoed)


class QuotaGuard:
    """Veto deletions that would push a species below its minimum."""

    def __init__(
        self,
        min_per_species: int = 0,
        overrides: Optional[Mapping[str, int]] = None,
        trim_order: "str | TrimOrder" = TrimOrder.NEWEST_FIRST,
    ) -> None:
        if min_per_species < 0:
            raise ConfigurationError("min_clips_per_species must be >= 0")
        self.min_per_species = int(min_per_species)
        self.overrides: dict[str, int] = {}
        for name, value in (overrides or {}).items():
            if int(value) < 0:
                raise ConfigurationError(f"minimum for species {name!r} must be >= 0")
            self.overrides[species_key(name)] = int(value)
        self.trim_order = TrimOrder.parse(trim_order)

    def minimum_for(self, species: str) -> int:
        return self.overrides.get(species_key(species), self.min_per_species)

    @staticmethod
    def _counts(inventory: Iterable[ClipRecord]) -> Counter:
        return Counter(species_key(record.species) for record in inventory)

    def budget(self, inventory: Iterable[ClipRecord]) -> QuotaBudget:
        """Deletable clip count per species for the given population."""
        counts = self._counts(inventory)
        return QuotaBudget({key: count - self.overrides.get(key, self.min_per_species) for key, count in counts.items()})

    def enforce(self, candidates: Sequence[ClipRecord], inventory: Iterable[ClipRecord]) -> QuotaResult:
        """Drop just enough candidates per species to keep every minimum.

        ``inventory`` must be the whole population seen by the pass,
        including locked records. Approved candidates keep their input order.
        """

        counts = self._counts(inventory)
        by_species: dict[str, list[ClipRecord]] = defaultdict(list)
        for record in candidates:
            by_species[species_key(record.species)].append(record)

        vetoed: set[str] = set()
        for key, group in by_species.items():
            allowed = max(0, counts.get(key, 0) - self.overrides.get(key, self.min_per_species))
            excess = len(group) - allowed
            if excess <= 0:
                continue
            # Sort so the clips to spare come first.
            newest_first = self.trim_order is TrimOrder.NEWEST_FIRST
            ordered = sorted(group, key=ClipRecord.sort_key, reverse=newest_first)
            vetoed.update(record.path for record in ordered[:excess])

        approved = tuple(record for record in candidates if record.path not in vetoed)
        spared = tuple(record for record in candidates if record.path in vetoed)
        return QuotaResult(approved=approved, vetoed=spared)


__all__ = ["QuotaBudget", "QuotaGuard", "QuotaResult", "TrimOrder", "species_key"]
