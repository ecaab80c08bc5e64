"""Filesystem usage probe for the usage policy."""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from typing import Callable

import psutil

from .errors import PathLike, ScanRootUnavailableError


@dataclass(slots=True, frozen=True)
class DiskUsage:
    total_bytes: int
    free_bytes: int

    @property
    def used_bytes(self) -> int:
        return max(0, self.total_bytes - self.free_bytes)

    @property
    def free_ratio(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return self.free_bytes / self.total_bytes

    @property
    def used_ratio(self) -> float:
        return 1.0 - self.free_ratio

    def bytes_needed(self, min_free_ratio: float) -> int:
        """Bytes that must be freed for ``free_ratio >= min_free_ratio``."""
        target = math.ceil(round(self.total_bytes * min_free_ratio, 6))
        return max(0, target - self.free_bytes)

    def meets(self, min_free_ratio: float) -> bool:
        return self.bytes_needed(min_free_ratio) == 0


DiskProbe = Callable[[str], DiskUsage]


def read_disk_usage(path: PathLike) -> DiskUsage:
    """Blocking read of the filesystem holding ``path``."""
    try:
        usage = psutil.disk_usage(str(path))
    except OSError as exc:
        raise ScanRootUnavailableError(path, exc) from exc
    return DiskUsage(total_bytes=int(usage.total), free_bytes=int(usage.free))


async def probe_disk_usage(path: PathLike, probe: DiskProbe = read_disk_usage) -> DiskUsage:
    return await asyncio.to_thread(probe, str(path))


__all__ = ["DiskUsage", "DiskProbe", "read_disk_usage", "probe_disk_usage"]
