"""Execution engine for backup runs and monitoring runs.

A backup run resolves its scope, produces artifacts (in parallel), publishes
them, then applies retention. Retention only starts after every upload has
finished. Production failures abort the run; publish and retention failures
are recorded and the run finishes with status `warning`.

A monitoring run scans local and remote storage, evaluates alerts against a
single clock reading and replaces the persisted status report.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from fastapi.concurrency import run_in_threadpool

from backend.services.lifecycle.alerts import AlertThresholds, evaluate_alerts
from backend.services.lifecycle.errors import ConfigurationError, ProductionError
from backend.services.lifecycle.inventory import InventoryMonitor
from backend.services.lifecycle.models import (
    ALL_CATEGORIES,
    BackupArtifact,
    BackupCategory,
    BackupType,
    GlobalView,
    StatusReport,
    Trigger,
    format_timestamp,
    utcnow,
)
from backend.services.lifecycle.notification_service import NotificationService
from backend.services.lifecycle.producers import ProducerRegistry
from backend.services.lifecycle.publisher import PUBLISH_FAILED, PublishResult, RemotePublisher
from backend.services.lifecycle.reporter import StatusReporter, write_json_atomic
from backend.services.lifecycle.retention import RetentionManager, RetentionOutcome
from backend.services.lifecycle.selector import categories_for_type, resolve_backup_type


logger = logging.getLogger(__name__)

RUN_SUCCESS = "success"
RUN_WARNING = "warning"
RUN_FAILED = "failed"

STAGE_CONFIGURE = "configure"
STAGE_PRODUCE = "produce"


@dataclass
class BackupRunResult:
    """Outcome of one backup run."""

    run_id: str
    trigger: str
    requested_type: Optional[BackupType]
    resolved_type: BackupType
    categories: Tuple[BackupCategory, ...]
    started_at: datetime
    finished_at: Optional[datetime] = None
    status: str = RUN_SUCCESS
    failed_stage: Optional[str] = None
    error: Optional[str] = None
    artifacts: List[BackupArtifact] = field(default_factory=list)
    uploads: List[PublishResult] = field(default_factory=list)
    retention: List[RetentionOutcome] = field(default_factory=list)

    @property
    def publish_failures(self) -> List[PublishResult]:
        return [u for u in self.uploads if u.status == PUBLISH_FAILED]

    @property
    def deleted(self) -> List[BackupArtifact]:
        return [a for outcome in self.retention for a in outcome.deleted]

    @property
    def retention_errors(self) -> List[str]:
        return [str(e) for outcome in self.retention for e in outcome.errors]

    @property
    def total_size_bytes(self) -> int:
        return sum(a.size_bytes for a in self.artifacts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "timestamp": format_timestamp(self.started_at),
            "finished_at": format_timestamp(self.finished_at),
            "trigger": self.trigger,
            "requested_type": self.requested_type.value if self.requested_type else None,
            "resolved_type": self.resolved_type.value,
            "categories": [c.value for c in self.categories],
            "status": self.status,
            "failed_stage": self.failed_stage,
            "error": self.error,
            "artifacts": [a.to_dict() for a in self.artifacts],
            "uploads": [u.to_dict() for u in self.uploads],
            "deleted": [a.to_dict() for a in self.deleted],
            "retention_errors": self.retention_errors,
            "total_size_bytes": self.total_size_bytes,
        }


def _parse_backup_type(value: Union[BackupType, str, None]) -> Optional[BackupType]:
    if value is None or value == "":
        return None
    try:
        return BackupType(str(getattr(value, "value", value)).strip().lower())
    except ValueError:
        raise ConfigurationError(f"Unknown backup type: {value}") from None


class BackupExecutor:
    """Run the select -> produce -> publish -> retain pipeline."""

    def __init__(
        self,
        producers: ProducerRegistry,
        publisher: RemotePublisher,
        retention: RetentionManager,
        *,
        run_report_path: Optional[Path] = None,
    ):
        self.producers = producers
        self.publisher = publisher
        self.retention = retention
        self.run_report_path = run_report_path

    async def run(
        self,
        *,
        trigger: Union[Trigger, str] = Trigger.MANUAL,
        backup_type: Union[BackupType, str, None] = None,
        changes: Optional[Iterable[str]] = None,
    ) -> BackupRunResult:
        """Execute one backup run.

        Args:
            trigger: Event that started the run.
            backup_type: Explicit type; resolved from trigger and changes when omitted.
            changes: Changed paths used by the type selector.

        Returns:
            BackupRunResult: Outcome with status success or warning.

        Raises:
            ConfigurationError: Required configuration is missing (nothing was produced).
            ProductionError: An artifact could not be produced; nothing was published.
        """

        trigger_label = str(getattr(trigger, "value", trigger) or Trigger.MANUAL.value)
        requested = _parse_backup_type(backup_type)
        resolved = requested or resolve_backup_type(trigger_label, list(changes or ()))
        categories = categories_for_type(resolved)

        result = BackupRunResult(
            run_id=str(uuid.uuid4()),
            trigger=trigger_label,
            requested_type=requested,
            resolved_type=resolved,
            categories=categories,
            started_at=utcnow(),
        )
        logger.info(
            "Starting backup run %s (trigger=%s, type=%s, categories=%s)",
            result.run_id,
            trigger_label,
            resolved.value,
            ",".join(c.value for c in categories),
        )

        try:
            self.producers.validate(categories)
        except ConfigurationError as exc:
            self._fail(result, STAGE_CONFIGURE, exc)
            raise

        try:
            result.artifacts = await self._produce(categories)
        except ProductionError as exc:
            self._fail(result, STAGE_PRODUCE, exc)
            raise

        result.uploads = await self.publisher.publish_all(result.artifacts)
        result.retention = await run_in_threadpool(self.retention.enforce_all, ALL_CATEGORIES)

        if result.publish_failures or result.retention_errors:
            result.status = RUN_WARNING
        result.finished_at = utcnow()
        self._write_report(result)

        logger.info(
            "Backup run %s finished with status=%s: %s artifact(s), %.2f MB, %s upload failure(s), %s deleted",
            result.run_id,
            result.status,
            len(result.artifacts),
            result.total_size_bytes / (1024 * 1024),
            len(result.publish_failures),
            len(result.deleted),
        )
        return result

    async def _produce(self, categories: Tuple[BackupCategory, ...]) -> List[BackupArtifact]:
        """Produce every category concurrently; raise the first failure in category order."""

        outcomes = await asyncio.gather(
            *(run_in_threadpool(self.producers.produce, category) for category in categories),
            return_exceptions=True,
        )

        artifacts: List[BackupArtifact] = []
        first_error: Optional[ProductionError] = None
        for category, outcome in zip(categories, outcomes):
            if isinstance(outcome, BaseException):
                error = outcome
                if not isinstance(error, ProductionError):
                    if not isinstance(error, Exception):
                        raise error
                    error = ProductionError(category, error)
                    error.__cause__ = outcome
                logger.error("%s", error)
                if first_error is None:
                    first_error = error
                continue
            artifacts.append(outcome)

        if first_error is not None:
            raise first_error
        return artifacts

    def _fail(self, result: BackupRunResult, stage: str, exc: Exception) -> None:
        result.status = RUN_FAILED
        result.failed_stage = stage
        result.error = str(exc)
        result.finished_at = utcnow()
        logger.error("Backup run %s failed at stage %s: %s", result.run_id, stage, exc)
        self._write_report(result)

    def _write_report(self, result: BackupRunResult) -> None:
        if self.run_report_path is None:
            return
        try:
            write_json_atomic(self.run_report_path, result.to_dict())
            logger.info("Backup report saved: %s", self.run_report_path)
        except OSError:
            logger.exception("Failed to write backup report %s", self.run_report_path)


class MonitorExecutor:
    """Run the scan -> evaluate -> report pipeline."""

    def __init__(
        self,
        monitor: InventoryMonitor,
        reporter: StatusReporter,
        *,
        thresholds: Optional[AlertThresholds] = None,
        notifier: Optional[NotificationService] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.monitor = monitor
        self.reporter = reporter
        self.thresholds = thresholds or AlertThresholds()
        self.notifier = notifier
        self._clock = clock

    async def run(self) -> StatusReport:
        """Execute one monitoring run.

        Always returns a report; storage and notification failures are logged.
        """

        now = self._clock()
        logger.info("Starting backup monitoring run")

        local, remote = await self.monitor.scan()
        view = GlobalView.merge(local, remote)
        alerts = evaluate_alerts(view, now=now, thresholds=self.thresholds, remote_error=remote.error)
        report = self.reporter.build(local=local, remote=remote, alerts=alerts, now=now)

        try:
            await run_in_threadpool(self.reporter.write, report)
        except OSError:
            logger.exception("Failed to write status report %s", self.reporter.report_path)

        if self.notifier is not None:
            await self.notifier.notify(report)

        logger.info(
            "Monitoring finished: status=%s, local=%s, remote=%s, alerts=%s",
            report.health_verdict.value,
            report.local_total,
            report.remote_count,
            len(report.alerts),
        )
        return report
