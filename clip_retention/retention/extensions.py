"""Audio container allow-list.

Only these extensions are ever considered by destructive operations. A
configured list may narrow the set but can never add to it.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional

from .errors import ConfigurationError


class AudioExtension(str, Enum):
    WAV = ".wav"
    MP3 = ".mp3"
    FLAC = ".flac"
    AAC = ".aac"
    OPUS = ".opus"

    @classmethod
    def lookup(cls, suffix: str) -> Optional["AudioExtension"]:
        """Return the matching variant for ``suffix`` (case-insensitive), else None.

        Whitespace is significant: ``".wav "`` is not ``".wav"``.
        """
        normalized = suffix.lower()
        if normalized and not normalized.startswith("."):
            normalized = f".{normalized}"
        for member in cls:
            if member.value == normalized:
                return member
        return None


DEFAULT_EXTENSIONS: tuple[AudioExtension, ...] = tuple(AudioExtension)


def parse_extensions(values: Iterable[str]) -> tuple[AudioExtension, ...]:
    """Build an ordered, de-duplicated allow-list from user-supplied strings."""

    result: list[AudioExtension] = []
    for raw in values:
        text = str(raw).strip()
        if not text:
            continue
        member = AudioExtension.lookup(text)
        if member is None:
            allowed = ", ".join(ext.value for ext in AudioExtension)
            raise ConfigurationError(
                f"extension {text!r} is not an audio container (allowed: {allowed})"
            )
        if member not in result:
            result.append(member)
    if not result:
        raise ConfigurationError("allowed_extensions must name at least one audio extension")
    return tuple(result)


__all__ = ["AudioExtension", "DEFAULT_EXTENSIONS", "parse_extensions"]
