"""``clip-retention`` command line: run, watch, inspect, history."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

from clip_retention.core.config_manager import get_config_manager
from clip_retention.core.logging_config import configure_logging
from clip_retention.core.logging_utils import get_module_logger
from clip_retention.core.paths import CONFIG_PATH, DEFAULT_LOG_FILE, ensure_directories
from clip_retention.retention.engine import PassPlan, RetentionEngine
from clip_retention.retention.errors import ConfigurationError, RetentionError
from clip_retention.retention.scheduler import RetentionScheduler
from clip_retention.retention.settings import RetentionSettings
from clip_retention.store.sqlite_store import SQLiteRetentionStore

from .common import (
    add_common_cli_arguments,
    add_retention_arguments,
    install_exception_handlers,
    install_signal_handlers,
    log_startup,
    positive_float,
    positive_int,
)


logger = get_module_logger("CLI")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    shared = argparse.ArgumentParser(add_help=False)
    add_common_cli_arguments(shared)
    add_retention_arguments(shared)

    parser = argparse.ArgumentParser(
        prog="clip-retention",
        description="Evict old or excess audio clips while keeping locked clips and species minimums",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run", parents=[shared], help="Run one eviction pass and print its summary")

    watch = subparsers.add_parser("watch", parents=[shared], help="Run passes periodically until interrupted")
    watch.add_argument(
        "--interval",
        type=positive_float,
        default=None,
        help="Seconds between scheduled passes (default: pass_interval_sec from config)",
    )

    subparsers.add_parser("inspect", parents=[shared], help="Show what a pass would delete, without deleting")

    history = subparsers.add_parser("history", parents=[shared], help="List recent deletions from the audit log")
    history.add_argument("--limit", type=positive_int, default=20, help="Number of entries to show")

    return parser.parse_args(argv)


async def load_settings(args: argparse.Namespace) -> RetentionSettings:
    """Config file (plus user overrides) first, then explicit command-line flags."""

    config_path = Path(args.config) if args.config else CONFIG_PATH
    if args.config and not config_path.exists():
        raise ConfigurationError(f"config file not found: {config_path}")
    config = await get_config_manager().read_config_async(config_path)
    settings = RetentionSettings.from_config(config, base_dir=config_path.resolve().parent)
    return settings.apply_args(args)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=False))


def _plan_report(plan: PassPlan) -> dict[str, Any]:
    decision = plan.decision
    by_path = {record.path: record for record in plan.batch}
    report: dict[str, Any] = {
        "mode": decision.mode.value,
        "now": plan.now.isoformat(),
        "scanned": len(plan.scan.records),
        "parse_errors": [{"path": path, "error": str(error)} for path, error in plan.scan.errors],
        "locked": plan.inventory.locked_count,
        "skipped_locked": decision.skipped_locked,
        "skipped_quota": decision.skipped_quota,
        "deferred": decision.deferred,
        "shortfall_bytes": decision.shortfall_bytes,
        "warnings": [str(warning) for warning in decision.warnings],
        "candidates": [
            {**by_path[path].to_dict(), "reason": decision.reasons.get(path, "")}
            for path in decision.to_delete
        ],
    }
    if plan.usage is not None:
        report["disk"] = {
            "total_bytes": plan.usage.total_bytes,
            "free_bytes": plan.usage.free_bytes,
            "free_ratio": round(plan.usage.free_ratio, 4),
        }
    return report


async def _cmd_run(engine: RetentionEngine) -> int:
    summary = await engine.run_pass()
    _print_json(summary.to_dict())
    return 1 if summary.failed else 0


async def _cmd_inspect(engine: RetentionEngine) -> int:
    plan = await engine.plan()
    _print_json(_plan_report(plan))
    return 0


async def _cmd_watch(engine: RetentionEngine) -> int:
    scheduler = RetentionScheduler(engine, logger=get_module_logger("Scheduler"))
    loop = asyncio.get_running_loop()
    install_signal_handlers(scheduler, loop)
    install_exception_handlers(logger, loop)
    await scheduler.run_forever()
    logger.info("Scheduler stopped after %d pass(es)", scheduler.passes_run)
    return 0


async def _cmd_history(store: SQLiteRetentionStore, limit: int) -> int:
    entries = await asyncio.to_thread(store.list_deletions, limit)
    _print_json([{"filename": entry.filename, "deleted_at": entry.deleted_at.isoformat()} for entry in entries])
    return 0


async def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)

    try:
        settings = await load_settings(args)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    ensure_directories()
    configure_logging(
        settings.log_level,
        force=True,
        console=settings.console_output,
        log_file=settings.log_file or DEFAULT_LOG_FILE,
    )

    store = SQLiteRetentionStore(settings.audit_db)

    if args.command == "history":
        return await _cmd_history(store, args.limit)

    log_startup(
        logger,
        "Clip Retention - " + args.command,
        mode=settings.retention_mode.value,
        scan_root=settings.scan_root,
        audit_db=settings.audit_db,
        dry_run=settings.dry_run,
    )

    engine = RetentionEngine(settings, store, store, logger=get_module_logger("Engine"))
    try:
        if args.command == "run":
            return await _cmd_run(engine)
        if args.command == "inspect":
            return await _cmd_inspect(engine)
        return await _cmd_watch(engine)
    except RetentionError as exc:
        logger.error("Pass aborted: %s", exc)
        return 1


def run(argv: Optional[list[str]] = None) -> int:
    try:
        return asyncio.run(main(argv))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130


if __name__ == "__main__":
    raise SystemExit(run())
