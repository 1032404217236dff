"""Build backup and monitoring executors from settings.

Settings are translated into explicit config objects here; the components
themselves never read global settings.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any

from backend.services.lifecycle.alerts import AlertThresholds
from backend.services.lifecycle.executor import BackupExecutor, MonitorExecutor
from backend.services.lifecycle.inventory import InventoryMonitor
from backend.services.lifecycle.notification_service import (
    NotificationConfig,
    NotificationService,
    normalize_min_severity,
)
from backend.services.lifecycle.producers import ProducerConfig, ProducerRegistry
from backend.services.lifecycle.publisher import RemotePublisher
from backend.services.lifecycle.reporter import StatusReporter
from backend.services.lifecycle.retention import RetentionManager
from backend.services.lifecycle.storage.factory import build_remote_storage
from backend.services.lifecycle.storage.local import LocalBackupStore, LocalConfig


def alert_thresholds_from_settings(settings: Any) -> AlertThresholds:
    return AlertThresholds(
        stale_after=timedelta(hours=float(settings.BACKUP_STALE_HOURS)),
        max_age=timedelta(days=float(settings.BACKUP_MAX_AGE_DAYS)),
        minimum_count=int(settings.BACKUP_MIN_COUNT),
    )


def status_report_path(settings: Any) -> Path:
    return Path(settings.BACKUP_DIR) / settings.STATUS_REPORT_FILENAME


def run_report_path(settings: Any) -> Path:
    return Path(settings.BACKUP_DIR) / settings.RUN_REPORT_FILENAME


def build_backup_executor(settings: Any) -> BackupExecutor:
    """Wire a backup executor.

    Raises:
        ConfigurationError: When the remote storage type is unsupported.
    """

    store = LocalBackupStore(LocalConfig(base_path=str(settings.BACKUP_DIR)))
    producer_config = ProducerConfig(
        backup_dir=Path(settings.BACKUP_DIR),
        source_dir=Path(settings.BACKUP_SOURCE_DIR),
        database_url=settings.DATABASE_URL,
        config_files=list(settings.BACKUP_CONFIG_FILES),
        code_excludes=list(settings.BACKUP_CODE_EXCLUDES),
        timeout_seconds=float(settings.BACKUP_COMMAND_TIMEOUT_SECONDS),
    )
    publisher = RemotePublisher(
        build_remote_storage(settings),
        project=str(settings.PROJECT_NAME),
        prefix=str(settings.BACKUP_REMOTE_PREFIX),
        concurrency=int(settings.BACKUP_PUBLISH_CONCURRENCY),
    )
    return BackupExecutor(
        ProducerRegistry.from_config(producer_config, store),
        publisher,
        RetentionManager(store, max_keep=int(settings.BACKUP_MAX_BACKUPS)),
        run_report_path=run_report_path(settings),
    )


def build_monitor_executor(settings: Any) -> MonitorExecutor:
    """Wire a monitoring executor.

    Raises:
        ConfigurationError: When the remote storage type is unsupported.
    """

    store = LocalBackupStore(LocalConfig(base_path=str(settings.BACKUP_DIR)))
    monitor = InventoryMonitor(
        store,
        build_remote_storage(settings),
        remote_prefix=str(settings.BACKUP_REMOTE_PREFIX),
    )
    notifier = NotificationService(
        NotificationConfig(
            telegram_token=settings.TELEGRAM_BOT_TOKEN,
            chat_id=settings.TELEGRAM_CHAT_ID,
            min_severity=normalize_min_severity(settings.NOTIFY_MIN_SEVERITY),
            project=str(settings.PROJECT_NAME),
        )
    )
    return MonitorExecutor(
        monitor,
        StatusReporter(status_report_path(settings)),
        thresholds=alert_thresholds_from_settings(settings),
        notifier=notifier,
    )
