"""Threshold alerts over the merged backup inventory.

Rules:
- no backups anywhere -> critical
- newest backup older than the stale threshold -> high
- oldest backup older than the max-age threshold -> low (history horizon)
- fewer backups than the minimum count -> medium
- remote listing failed -> medium

When nothing exists at all only the critical alert is raised; the count
rule would restate the same fact.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from backend.services.lifecycle.models import (
    Alert,
    AlertKind,
    GlobalView,
    HealthVerdict,
    Severity,
    ensure_utc,
)


@dataclass(frozen=True)
class AlertThresholds:
    """Thresholds applied by `evaluate_alerts`."""

    stale_after: timedelta = timedelta(hours=24)
    max_age: timedelta = timedelta(days=7)
    minimum_count: int = 3


def evaluate_alerts(
    view: GlobalView,
    *,
    now: datetime,
    thresholds: Optional[AlertThresholds] = None,
    remote_error: Optional[str] = None,
) -> List[Alert]:
    """Evaluate every alert rule against the merged view.

    Args:
        view: Merged local and remote summary.
        now: Clock reading taken once at the start of the monitoring run.
        thresholds: Thresholds, defaults when omitted.
        remote_error: Error recorded by the remote scan, if any.

    Returns:
        List[Alert]: Alerts ordered by severity, most severe first.
    """

    thresholds = thresholds or AlertThresholds()
    now = ensure_utc(now)
    alerts: List[Alert] = []

    if view.newest is None:
        alerts.append(Alert(AlertKind.STALE_BACKUP, Severity.CRITICAL, "No backups found"))
    else:
        age = now - ensure_utc(view.newest)
        if age > thresholds.stale_after:
            hours = round(age.total_seconds() / 3600)
            alerts.append(
                Alert(AlertKind.STALE_BACKUP, Severity.HIGH, f"Most recent backup is {hours} hours old")
            )

    if view.oldest is not None:
        age = now - ensure_utc(view.oldest)
        if age > thresholds.max_age:
            days = round(age.total_seconds() / 86400)
            alerts.append(Alert(AlertKind.OLD_BACKUP, Severity.LOW, f"Oldest backup is {days} days old"))

    if view.newest is not None and view.total < thresholds.minimum_count:
        alerts.append(
            Alert(
                AlertKind.INSUFFICIENT_BACKUPS,
                Severity.MEDIUM,
                f"Only {view.total} backups found (minimum {thresholds.minimum_count})",
            )
        )

    if remote_error:
        alerts.append(
            Alert(AlertKind.REMOTE_UNREACHABLE, Severity.MEDIUM, f"Remote storage unreachable: {remote_error}")
        )

    return sort_alerts(alerts)


def sort_alerts(alerts: Iterable[Alert]) -> List[Alert]:
    """Order alerts critical > high > medium > low, stable within a severity."""

    return sorted(alerts, key=lambda a: a.severity.rank, reverse=True)


def health_verdict(alerts: Iterable[Alert]) -> HealthVerdict:
    return HealthVerdict.WARNING if any(True for _ in alerts) else HealthVerdict.HEALTHY


def has_critical(alerts: Iterable[Alert]) -> bool:
    return any(a.severity == Severity.CRITICAL for a in alerts)
