"""Configuration loading + normalization for the retention engine."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping, Optional

from clip_retention.core.paths import DEFAULT_AUDIT_DB

from .errors import ConfigurationError
from .extensions import DEFAULT_EXTENSIONS, AudioExtension, parse_extensions
from .policies import RetentionMode
from .quota import TrimOrder

_DURATION = re.compile(r"^\s*(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>[hdwmy]?)\s*$", re.IGNORECASE)
_DURATION_UNITS = {
    "": timedelta(hours=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
    "m": timedelta(days=30),
    "y": timedelta(days=365),
}
_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


def parse_duration(value: Any) -> timedelta:
    """Parse ``30d``, ``2w``, ``6m``, ``1y`` or ``12h``; a bare number means hours."""

    if isinstance(value, timedelta):
        return value
    match = _DURATION.match(str(value))
    if match is None:
        raise ConfigurationError(f"invalid duration {value!r} (use e.g. 12h, 30d, 2w, 6m, 1y)")
    amount = float(match.group("value"))
    duration = _DURATION_UNITS[match.group("unit").lower()] * amount
    if duration <= timedelta(0):
        raise ConfigurationError(f"duration must be positive (got {value!r})")
    return duration


def format_duration(value: timedelta) -> str:
    seconds = int(value.total_seconds())
    if seconds % 86400 == 0:
        return f"{seconds // 86400}d"
    return f"{seconds / 3600:g}h"


def parse_ratio(value: Any) -> float:
    """Parse ``0.15`` or ``15%`` into a fraction strictly between 0 and 1."""

    text = str(value).strip()
    try:
        ratio = float(text[:-1]) / 100.0 if text.endswith("%") else float(text)
    except ValueError as exc:
        raise ConfigurationError(f"invalid ratio {value!r}") from exc
    if not 0.0 < ratio < 1.0:
        raise ConfigurationError(f"min_free_space_ratio must be between 0 and 1 (got {value!r})")
    return ratio


def parse_overrides(value: Any) -> dict[str, int]:
    """Parse ``owl:5, duck:2`` into a species to minimum mapping."""

    if isinstance(value, Mapping):
        items = list(value.items())
    else:
        items = []
        for chunk in str(value or "").split(","):
            chunk = chunk.strip()
            if not chunk:
                continue
            if ":" not in chunk:
                raise ConfigurationError(f"species override {chunk!r} must look like species:count")
            name, count = chunk.rsplit(":", 1)
            items.append((name.strip(), count.strip()))

    overrides: dict[str, int] = {}
    for name, count in items:
        if not name:
            raise ConfigurationError("species override with empty species name")
        try:
            number = int(count)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"species override for {name!r} is not an integer: {count!r}") from exc
        if number < 0:
            raise ConfigurationError(f"species override for {name!r} must be >= 0")
        overrides[name] = number
    return overrides


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"invalid boolean {value!r}")


def _parse_int(key: str, value: Any) -> int:
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be an integer (got {value!r})") from exc


def _parse_float(key: str, value: Any) -> float:
    try:
        return float(str(value).strip())
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a number (got {value!r})") from exc


def _resolve_path(value: Any, base_dir: Optional[Path]) -> Path:
    path = Path(str(value).strip()).expanduser()
    if base_dir is not None and not path.is_absolute():
        path = base_dir / path
    return path


@dataclass(slots=True)
class RetentionSettings:
    """Normalized configuration derived from the config file and CLI args."""

    retention_mode: RetentionMode = RetentionMode.AGE
    scan_root: Path = Path("clips")
    max_age: timedelta = timedelta(days=30)
    min_free_space_ratio: float = 0.1
    min_clips_per_species: int = 10
    species_min_overrides: dict[str, int] = field(default_factory=dict)
    allowed_extensions: tuple[AudioExtension, ...] = DEFAULT_EXTENSIONS
    quota_trim_order: TrimOrder = TrimOrder.NEWEST_FIRST
    max_deletions_per_pass: int = 1000
    dry_run: bool = False
    pass_interval_sec: float = 900.0
    disk_check_interval_sec: float = 60.0
    audit_db: Path = DEFAULT_AUDIT_DB
    log_level: str = "info"
    log_file: Optional[Path] = None
    console_output: bool = True

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        *,
        base_dir: Optional[Path] = None,
    ) -> "RetentionSettings":
        """Build settings from ``key = value`` pairs; unknown keys are ignored."""

        settings = cls()
        if "retention_mode" in config:
            settings.retention_mode = RetentionMode.parse(config["retention_mode"])
        if "scan_root" in config:
            settings.scan_root = _resolve_path(config["scan_root"], base_dir)
        if "max_age" in config:
            settings.max_age = parse_duration(config["max_age"])
        if "min_free_space_ratio" in config:
            settings.min_free_space_ratio = parse_ratio(config["min_free_space_ratio"])
        if "min_clips_per_species" in config:
            settings.min_clips_per_species = _parse_int("min_clips_per_species", config["min_clips_per_species"])
        if "species_min_overrides" in config:
            settings.species_min_overrides = parse_overrides(config["species_min_overrides"])
        if "allowed_extensions" in config:
            raw = config["allowed_extensions"]
            values = raw.split(",") if isinstance(raw, str) else list(raw)
            settings.allowed_extensions = parse_extensions(values)
        if "quota_trim_order" in config:
            settings.quota_trim_order = TrimOrder.parse(config["quota_trim_order"])
        if "max_deletions_per_pass" in config:
            settings.max_deletions_per_pass = _parse_int("max_deletions_per_pass", config["max_deletions_per_pass"])
        if "dry_run" in config:
            settings.dry_run = parse_bool(config["dry_run"])
        if "pass_interval_sec" in config:
            settings.pass_interval_sec = _parse_float("pass_interval_sec", config["pass_interval_sec"])
        if "disk_check_interval_sec" in config:
            settings.disk_check_interval_sec = _parse_float(
                "disk_check_interval_sec", config["disk_check_interval_sec"]
            )
        if "audit_db" in config:
            settings.audit_db = _resolve_path(config["audit_db"], base_dir)
        if "log_level" in config:
            settings.log_level = str(config["log_level"]).strip().lower()
        if config.get("log_file"):
            settings.log_file = _resolve_path(config["log_file"], base_dir)
        if "console_output" in config:
            settings.console_output = parse_bool(config["console_output"])

        settings.validate()
        return settings

    def apply_args(self, args: Any) -> "RetentionSettings":
        """Overlay command-line values that were explicitly provided."""

        updates: dict[str, Any] = {}
        if getattr(args, "scan_root", None):
            updates["scan_root"] = Path(args.scan_root)
        if getattr(args, "mode", None):
            updates["retention_mode"] = RetentionMode.parse(args.mode)
        if getattr(args, "max_age", None):
            updates["max_age"] = parse_duration(args.max_age)
        if getattr(args, "min_free_ratio", None):
            updates["min_free_space_ratio"] = parse_ratio(args.min_free_ratio)
        if getattr(args, "min_clips", None) is not None:
            updates["min_clips_per_species"] = int(args.min_clips)
        if getattr(args, "dry_run", False):
            updates["dry_run"] = True
        if getattr(args, "audit_db", None):
            updates["audit_db"] = Path(args.audit_db)
        if getattr(args, "log_level", None):
            updates["log_level"] = str(args.log_level).strip().lower()
        if getattr(args, "log_file", None):
            updates["log_file"] = Path(args.log_file)
        if getattr(args, "console_output", None) is not None:
            updates["console_output"] = bool(args.console_output)
        if getattr(args, "interval", None):
            updates["pass_interval_sec"] = float(args.interval)

        settings = replace(self, **updates)
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.max_age <= timedelta(0):
            raise ConfigurationError("max_age must be a positive duration")
        if not 0.0 < self.min_free_space_ratio < 1.0:
            raise ConfigurationError("min_free_space_ratio must be between 0 and 1")
        if self.min_clips_per_species < 0:
            raise ConfigurationError("min_clips_per_species must be >= 0")
        if any(value < 0 for value in self.species_min_overrides.values()):
            raise ConfigurationError("species_min_overrides values must be >= 0")
        if not self.allowed_extensions:
            raise ConfigurationError("allowed_extensions must not be empty")
        if self.max_deletions_per_pass < 0:
            raise ConfigurationError("max_deletions_per_pass must be >= 0 (0 means unlimited)")
        if self.pass_interval_sec <= 0:
            raise ConfigurationError("pass_interval_sec must be positive")
        if self.disk_check_interval_sec <= 0:
            raise ConfigurationError("disk_check_interval_sec must be positive")

    def to_dict(self) -> dict[str, Any]:
        return {
            "retention_mode": self.retention_mode.value,
            "scan_root": str(self.scan_root),
            "max_age": format_duration(self.max_age),
            "min_free_space_ratio": self.min_free_space_ratio,
            "min_clips_per_species": self.min_clips_per_species,
            "species_min_overrides": dict(self.species_min_overrides),
            "allowed_extensions": [ext.value for ext in self.allowed_extensions],
            "quota_trim_order": self.quota_trim_order.value,
            "max_deletions_per_pass": self.max_deletions_per_pass,
            "dry_run": self.dry_run,
            "pass_interval_sec": self.pass_interval_sec,
            "disk_check_interval_sec": self.disk_check_interval_sec,
            "audit_db": str(self.audit_db),
            "log_level": self.log_level,
            "log_file": str(self.log_file) if self.log_file else None,
            "console_output": self.console_output,
        }


__all__ = [
    "RetentionSettings",
    "format_duration",
    "parse_bool",
    "parse_duration",
    "parse_overrides",
    "parse_ratio",
]
