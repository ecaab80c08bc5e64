"""Centralized path constants for the retention engine."""

from __future__ import annotations

import os
from pathlib import Path

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
PROJECT_ROOT = PACKAGE_ROOT.parent

# Configuration
CONFIG_PATH = PROJECT_ROOT / "config.txt"

# User-specific state (allows running from read-only project directories)
_USER_STATE_ENV = os.environ.get("CLIP_RETENTION_STATE_DIR")
USER_STATE_DIR = Path(_USER_STATE_ENV).expanduser() if _USER_STATE_ENV else (Path.home() / ".clip_retention")
USER_CONFIG_OVERRIDES_DIR = USER_STATE_DIR / "config_overrides"
USER_LOGS_DIR = USER_STATE_DIR / "logs"

# Defaults used when the config file leaves them unset
DEFAULT_AUDIT_DB = USER_STATE_DIR / "retention.db"
DEFAULT_LOG_FILE = USER_LOGS_DIR / "retention.log"


def ensure_directories() -> None:
    """Create the user state directories if they don't exist."""

    USER_STATE_DIR.mkdir(parents=True, exist_ok=True)
    USER_CONFIG_OVERRIDES_DIR.mkdir(parents=True, exist_ok=True)
    USER_LOGS_DIR.mkdir(parents=True, exist_ok=True)


__all__ = [
    "PACKAGE_ROOT",
    "PROJECT_ROOT",
    "CONFIG_PATH",
    "USER_STATE_DIR",
    "USER_CONFIG_OVERRIDES_DIR",
    "USER_LOGS_DIR",
    "DEFAULT_AUDIT_DB",
    "DEFAULT_LOG_FILE",
    "ensure_directories",
]
