"""Clip records derived from capture filenames."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

from .errors import FileTypeNotEligibleError, MalformedFilenameError, PathLike
from .extensions import DEFAULT_EXTENSIONS, AudioExtension

CLIP_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S"

_CLIP_STEM = re.compile(
    r"^(?P<species>.+?)_(?P<confidence>\d{1,3})p_(?P<timestamp>\d{8}T\d{6})Z$"
)

_BY_SUFFIX = {member.value: member for member in AudioExtension}


class _HasSize(Protocol):
    st_size: int


@dataclass(slots=True, frozen=True)
class ClipRecord:
    """One audio clip as seen by a single eviction pass."""

    path: str
    species: str
    confidence: int
    captured_at: datetime
    size_bytes: int
    locked: bool = False

    @property
    def filename(self) -> str:
        return os.path.basename(self.path)

    def sort_key(self) -> tuple[datetime, str]:
        """Oldest first, ties broken by path."""
        return (self.captured_at, self.path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "species": self.species,
            "confidence": self.confidence,
            "captured_at": self.captured_at.isoformat(),
            "size_bytes": self.size_bytes,
            "locked": self.locked,
        }


def normalize_clip_path(path: PathLike) -> str:
    """Absolute, normalized string form used as the record key."""
    return os.path.normpath(os.path.abspath(os.fspath(path)))


def check_extension(path: PathLike, allowed_extensions: Iterable[AudioExtension] = DEFAULT_EXTENSIONS) -> AudioExtension:
    """Return the allow-listed extension of ``path`` or raise FileTypeNotEligibleError."""

    suffix = os.path.splitext(os.fspath(path))[1]
    member = _BY_SUFFIX.get(suffix.lower())
    if member is None or member not in tuple(allowed_extensions):
        raise FileTypeNotEligibleError(path, suffix.lower())
    return member


def parse_clip_file(
    path: PathLike,
    stat_result: _HasSize,
    allowed_extensions: Iterable[AudioExtension] = DEFAULT_EXTENSIONS,
) -> ClipRecord:
    """Build a ClipRecord from ``path`` and its already-read stat metadata.

    The extension check runs first and is a hard precondition: files outside
    the allow-list never get as far as filename parsing.

    Raises:
        FileTypeNotEligibleError: extension not on the allow-list.
        MalformedFilenameError: the name does not carry species, confidence
            and a valid UTC timestamp.
    """

    check_extension(path, allowed_extensions)

    stem = os.path.splitext(os.path.basename(os.fspath(path)))[0]
    match = _CLIP_STEM.match(stem)
    if match is None:
        raise MalformedFilenameError(path, "expected species_NNp_YYYYMMDDTHHMMSSZ")

    species = match.group("species").strip()
    if not species:
        raise MalformedFilenameError(path, "empty species")

    confidence = int(match.group("confidence"))
    if confidence > 100:
        raise MalformedFilenameError(path, f"confidence {confidence} out of range")

    try:
        captured_at = datetime.strptime(match.group("timestamp"), CLIP_TIMESTAMP_FORMAT)
    except ValueError as exc:
        raise MalformedFilenameError(path, f"invalid timestamp: {exc}") from exc

    return ClipRecord(
        path=normalize_clip_path(path),
        species=species,
        confidence=confidence,
        captured_at=captured_at.replace(tzinfo=timezone.utc),
        size_bytes=int(stat_result.st_size),
    )


def format_clip_filename(species: str, confidence: int, captured_at: datetime, extension: str = ".wav") -> str:
    """Inverse of the parser; used by capture tooling and tests."""
    if captured_at.tzinfo is not None:
        captured_at = captured_at.astimezone(timezone.utc)
    return f"{species}_{confidence}p_{captured_at.strftime(CLIP_TIMESTAMP_FORMAT)}Z{extension}"


__all__ = [
    "CLIP_TIMESTAMP_FORMAT",
    "ClipRecord",
    "check_extension",
    "format_clip_filename",
    "normalize_clip_path",
    "parse_clip_file",
]
