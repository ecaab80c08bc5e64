"""Argument groups and process hooks shared by the clip-retention subcommands."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Optional


LOG_LEVELS: dict[str, int] = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def add_common_cli_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Configuration file (default: config.txt next to the package)",
    )

    parser.add_argument(
        "--log-level",
        choices=sorted(LOG_LEVELS.keys()),
        default=None,
        help="Logging verbosity (default: log_level from config, else info)",
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Rotating log file (default: logs/retention.log in the state directory)",
    )

    console_group = parser.add_mutually_exclusive_group()
    console_group.add_argument(
        "--console",
        dest="console_output",
        action="store_true",
        default=None,
        help="Also log pass activity to stdout",
    )
    console_group.add_argument(
        "--no-console",
        dest="console_output",
        action="store_false",
        help="Log to the file only",
    )


def add_retention_arguments(parser: argparse.ArgumentParser) -> None:
    """Overrides for the retention settings read from the config file."""

    parser.add_argument("--scan-root", type=Path, default=None, help="Directory holding captured clips")
    parser.add_argument(
        "--mode",
        choices=["age", "usage", "none"],
        default=None,
        help="Retention policy to apply",
    )
    parser.add_argument("--max-age", default=None, help="Age policy threshold, e.g. 12h, 30d, 2w, 6m, 1y")
    parser.add_argument(
        "--min-free-ratio",
        default=None,
        help="Usage policy target free space, e.g. 0.15 or 15%%",
    )
    parser.add_argument(
        "--min-clips",
        type=non_negative_int,
        default=None,
        help="Minimum clips kept per species",
    )
    parser.add_argument("--audit-db", type=Path, default=None, help="SQLite database for locks and audit log")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Plan and report deletions without removing files",
    )


def _bounded_int(value: str, *, minimum: int, label: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"{value!r} is not an integer") from exc
    if parsed < minimum:
        raise argparse.ArgumentTypeError(f"value must be {label}")
    return parsed


def positive_int(value: str) -> int:
    return _bounded_int(value, minimum=1, label="positive")


def non_negative_int(value: str) -> int:
    return _bounded_int(value, minimum=0, label="zero or more")


def positive_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"{value!r} is not a number") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be positive")
    return parsed


def install_exception_handlers(logger: Any, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
    """Route uncaught exceptions (and unhandled task errors on ``loop``) to ``logger``."""

    def _excepthook(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))

    sys.excepthook = _excepthook

    if loop is None:
        return

    def _loop_handler(_loop, context):
        message = context.get("message", "Unhandled asyncio exception")
        exception = context.get("exception")
        if exception is not None:
            logger.error("Asyncio exception: %s", message, exc_info=exception)
        else:
            logger.error("Asyncio error: %s (%s)", message, context)

    loop.set_exception_handler(_loop_handler)


def install_signal_handlers(scheduler: Any, loop: asyncio.AbstractEventLoop) -> None:
    """SIGINT/SIGTERM start one graceful scheduler shutdown; repeats are ignored."""

    requested = False

    def _request_shutdown():
        nonlocal requested
        if requested or scheduler.shutdown_event.is_set():
            return
        requested = True
        loop.create_task(scheduler.shutdown())

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, _request_shutdown)


def log_startup(logger: Any, title: str, **details: Any) -> None:
    rule = "=" * 60
    logger.info(rule)
    logger.info("%s", title)
    for key, value in details.items():
        logger.info("%s: %s", key.replace("_", " ").title(), value)
    logger.info(rule)


__all__ = [
    "LOG_LEVELS",
    "add_common_cli_arguments",
    "add_retention_arguments",
    "install_exception_handlers",
    "install_signal_handlers",
    "log_startup",
    "non_negative_int",
    "positive_float",
    "positive_int",
]
