#!/usr/bin/env python3
"""Backup lifecycle runner.

Runs either a backup run or a monitoring run from the command line.

Usage:
    python runner.py backup [--type TYPE] [--trigger TRIGGER] [--changes PATH ...]
    python runner.py monitor [--interval SECONDS]

Exit codes:
    backup:  0 on success (including upload/retention warnings), 1 when the
             run failed on configuration or artifact production.
    monitor: 0 unless a critical alert was raised, then 1.
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from api.logging_config import configure_logging, get_logger
from api.settings import settings
from backend.services.lifecycle.errors import ConfigurationError, ProductionError
from backend.services.lifecycle.executor import BackupRunResult
from backend.services.lifecycle.factory import build_backup_executor, build_monitor_executor
from backend.services.lifecycle.models import BackupType, StatusReport, Trigger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def _setup_logging() -> None:
    try:
        configure_logging(
            log_dir=settings.LOG_DIR,
            log_level=settings.LOG_LEVEL,
            debug=settings.DEBUG,
            log_filename=settings.LOG_FILENAME,
        )
    except ValueError:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logger.warning("Invalid LOG_LEVEL=%s; using INFO", settings.LOG_LEVEL)


def parse_changes(values: Optional[List[str]], env_value: str = "") -> List[str]:
    """Collect change descriptors from CLI values and a comma-separated env value.

    Args:
        values: Values passed via --changes (each may itself be comma-separated).
        env_value: Content of BACKUP_CHANGES.

    Returns:
        List[str]: Non-empty, stripped descriptors.
    """

    raw: List[str] = list(values or [])
    if not raw and env_value:
        raw = [env_value]

    changes: List[str] = []
    for item in raw:
        changes.extend(part.strip() for part in str(item).split(",") if part.strip())
    return changes


def print_backup_summary(result: BackupRunResult) -> None:
    print(f"Backup run {result.run_id}: {result.status.upper()}")
    print(f"   Trigger: {result.trigger}")
    print(f"   Type: {result.resolved_type.value}")
    print(f"   Backups created: {len(result.artifacts)}")
    print(f"   Total size: {result.total_size_bytes / 1024 / 1024:.2f} MB")
    for upload in result.uploads:
        suffix = f" ({upload.error})" if upload.error else ""
        print(f"   Upload {upload.status}: {upload.key}{suffix}")
    print(f"   Old backups deleted: {len(result.deleted)}")
    for error in result.retention_errors:
        print(f"   Retention error: {error}")


def print_status_summary(report: StatusReport) -> None:
    print("\nBackup Status Summary:")
    print(f"   Local backups: {report.local_total}")
    print(f"   Remote backups: {report.remote_count}")
    if report.remote_error:
        print(f"   Remote error: {report.remote_error}")
    print(f"   Total: {report.global_total}")
    print(f"   Status: {report.health_verdict.value.upper()}")

    if report.alerts:
        print("\nAlerts:")
        for alert in report.alerts:
            print(f"   [{alert.severity.value}] {alert.message}")
    else:
        print("\nAll systems healthy!")


async def run_backup(backup_type: Optional[str], trigger: str, changes: List[str]) -> int:
    """Execute one backup run and return the process exit code."""

    try:
        executor = build_backup_executor(settings)
        result = await executor.run(trigger=trigger, backup_type=backup_type, changes=changes)
    except ConfigurationError as exc:
        logger.error("Backup configuration error: %s", exc)
        return EXIT_FAILURE
    except ProductionError as exc:
        logger.error("Backup failed: %s", exc)
        return EXIT_FAILURE

    print_backup_summary(result)
    return EXIT_OK


async def run_monitor() -> int:
    """Execute one monitoring run and return the process exit code."""

    try:
        executor = build_monitor_executor(settings)
    except ConfigurationError as exc:
        logger.error("Monitoring configuration error: %s", exc)
        return EXIT_FAILURE

    report = await executor.run()
    print_status_summary(report)

    if report.has_critical:
        logger.error("Critical backup alerts found")
        return EXIT_FAILURE
    return EXIT_OK


async def monitor_loop(interval: int) -> None:
    """Run monitoring forever, one run every `interval` seconds."""

    logger.info("Backup monitor started (interval=%ss)", interval)
    while True:
        await run_monitor()
        await asyncio.sleep(interval)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Backup lifecycle runner")
    subparsers = parser.add_subparsers(dest="command", required=True)

    backup = subparsers.add_parser("backup", help="Create, publish and rotate backups")
    backup.add_argument(
        "--type",
        dest="backup_type",
        choices=[t.value for t in BackupType],
        default=os.environ.get("BACKUP_TYPE") or None,
        help="Backup type (default: resolved from the trigger)",
    )
    backup.add_argument(
        "--trigger",
        choices=[t.value for t in Trigger],
        default=os.environ.get("BACKUP_TRIGGER", Trigger.MANUAL.value),
        help="Event that started the run (default: manual)",
    )
    backup.add_argument(
        "--changes",
        nargs="*",
        default=None,
        help="Changed paths used to resolve the type on push (default: BACKUP_CHANGES)",
    )

    monitor = subparsers.add_parser("monitor", help="Scan backups, evaluate alerts and write the status report")
    monitor.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Repeat every N seconds instead of running once",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point."""

    args = build_parser().parse_args(argv)
    _setup_logging()

    if args.command == "backup":
        changes = parse_changes(args.changes, os.environ.get("BACKUP_CHANGES", ""))
        return asyncio.run(run_backup(args.backup_type, args.trigger, changes))

    if args.interval:
        asyncio.run(monitor_loop(args.interval))
        return EXIT_OK
    return asyncio.run(run_monitor())


if __name__ == "__main__":
    sys.exit(main())
