"""Data model shared by backup runs and monitoring runs.

Artifacts, inventories, alerts and the persisted status report all live here
so the backup pipeline and the monitor agree on what an "artifact" and a
"category" are.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple


class BackupCategory(str, Enum):
    """What is being backed up. Also names the storage partition."""

    DATABASE = "database"
    CONFIG = "config"
    CODE = "code"


ALL_CATEGORIES: Tuple[BackupCategory, ...] = (
    BackupCategory.DATABASE,
    BackupCategory.CONFIG,
    BackupCategory.CODE,
)


class BackupLocation(str, Enum):
    """Where an artifact is stored."""

    LOCAL = "local"
    REMOTE = "remote"


class BackupType(str, Enum):
    """Resolved scope of a backup run."""

    FULL = "full"
    INCREMENTAL = "incremental"
    DATABASE = "database"
    CONFIG = "config"
    CODE = "code"


class Trigger(str, Enum):
    """Event that started a backup run."""

    MANUAL = "manual"
    PUSH = "push"
    RELEASE = "release"
    SCHEDULE = "schedule"


class Severity(str, Enum):
    """Alert severity, ordered low < medium < high < critical."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class AlertKind(str, Enum):
    """Alert categories raised by the monitor."""

    STALE_BACKUP = "stale_backup"
    OLD_BACKUP = "old_backup"
    INSUFFICIENT_BACKUPS = "insufficient_backups"
    REMOTE_UNREACHABLE = "remote_unreachable"


class HealthVerdict(str, Enum):
    """Overall verdict of a monitoring run."""

    HEALTHY = "healthy"
    WARNING = "warning"


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return ensure_utc(value).isoformat()


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value))


@dataclass(frozen=True)
class BackupArtifact:
    """One concrete backup file or object.

    Attributes:
        category: Backup category.
        identifier: File name (local) or object name (remote), unique per
            category and location.
        location: Local or remote.
        size_bytes: Size read back from storage.
        created_at: Creation (modification) time read back from storage.
        path: Local filesystem path, for local artifacts.
        key: Full object key, for remote artifacts.
    """

    category: BackupCategory
    identifier: str
    location: BackupLocation
    size_bytes: int
    created_at: datetime
    path: Optional[Path] = None
    key: Optional[str] = None

    def age(self, now: datetime) -> timedelta:
        return ensure_utc(now) - ensure_utc(self.created_at)

    def age_ms(self, now: datetime) -> int:
        return int(self.age(now).total_seconds() * 1000)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "identifier": self.identifier,
            "location": self.location.value,
            "size_bytes": self.size_bytes,
            "created_at": format_timestamp(self.created_at),
        }


@dataclass(frozen=True)
class CategoryInventory:
    """Artifacts of one category in one location, newest first."""

    category: BackupCategory
    artifacts: Tuple[BackupArtifact, ...] = ()

    @classmethod
    def from_artifacts(cls, category: BackupCategory, artifacts: Iterable[BackupArtifact]) -> "CategoryInventory":
        ordered = sorted(artifacts, key=lambda a: ensure_utc(a.created_at), reverse=True)
        return cls(category=category, artifacts=tuple(ordered))

    @property
    def count(self) -> int:
        return len(self.artifacts)

    @property
    def newest(self) -> Optional[datetime]:
        return self.artifacts[0].created_at if self.artifacts else None

    @property
    def oldest(self) -> Optional[datetime]:
        return self.artifacts[-1].created_at if self.artifacts else None


@dataclass(frozen=True)
class Inventory:
    """Per-category inventory of a single storage location.

    A remote inventory that could not be listed is empty and carries the
    failure in `error`.
    """

    location: BackupLocation
    categories: Mapping[BackupCategory, CategoryInventory] = field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def empty(cls, location: BackupLocation, *, error: Optional[str] = None) -> "Inventory":
        return cls.from_artifacts(location, [], error=error)

    @classmethod
    def from_artifacts(
        cls,
        location: BackupLocation,
        artifacts: Iterable[BackupArtifact],
        *,
        error: Optional[str] = None,
    ) -> "Inventory":
        grouped: Dict[BackupCategory, List[BackupArtifact]] = {c: [] for c in ALL_CATEGORIES}
        for artifact in artifacts:
            grouped[artifact.category].append(artifact)
        categories = {c: CategoryInventory.from_artifacts(c, items) for c, items in grouped.items()}
        return cls(location=location, categories=categories, error=error)

    def for_category(self, category: BackupCategory) -> CategoryInventory:
        return self.categories.get(category) or CategoryInventory(category=category)

    @property
    def count(self) -> int:
        return sum(inv.count for inv in self.categories.values())

    @property
    def newest(self) -> Optional[datetime]:
        return _latest(inv.newest for inv in self.categories.values())

    @property
    def oldest(self) -> Optional[datetime]:
        return _earliest(inv.oldest for inv in self.categories.values())

    def counts(self) -> Dict[str, int]:
        return {c.value: self.for_category(c).count for c in ALL_CATEGORIES}


def _latest(values: Iterable[Optional[datetime]]) -> Optional[datetime]:
    present = [ensure_utc(v) for v in values if v is not None]
    return max(present) if present else None


def _earliest(values: Iterable[Optional[datetime]]) -> Optional[datetime]:
    present = [ensure_utc(v) for v in values if v is not None]
    return min(present) if present else None


@dataclass(frozen=True)
class GlobalView:
    """Local and remote inventories fused into a single summary."""

    newest: Optional[datetime]
    oldest: Optional[datetime]
    total: int

    @classmethod
    def merge(cls, local: Inventory, remote: Inventory) -> "GlobalView":
        return cls(
            newest=_latest([local.newest, remote.newest]),
            oldest=_earliest([local.oldest, remote.oldest]),
            total=local.count + remote.count,
        )


@dataclass(frozen=True)
class Alert:
    """A threshold violation found by a monitoring run."""

    kind: AlertKind
    severity: Severity
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind.value, "severity": self.severity.value, "message": self.message}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Alert":
        return cls(
            kind=AlertKind(data["kind"]),
            severity=Severity(data["severity"]),
            message=str(data.get("message", "")),
        )


@dataclass(frozen=True)
class StatusReport:
    """Health verdict of one monitoring run, persisted as JSON."""

    timestamp: datetime
    health_verdict: HealthVerdict
    per_category_counts: Dict[str, int]
    local_total: int
    remote_count: int
    remote_error: Optional[str]
    alerts: Tuple[Alert, ...]
    global_newest: Optional[datetime]
    global_oldest: Optional[datetime]
    global_total: int

    @property
    def has_critical(self) -> bool:
        return any(a.severity == Severity.CRITICAL for a in self.alerts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": format_timestamp(self.timestamp),
            "status": self.health_verdict.value,
            "local": {
                "total": self.local_total,
                "categories": dict(self.per_category_counts),
            },
            "remote": {
                "total": self.remote_count,
                "error": self.remote_error,
            },
            "alerts": [a.to_dict() for a in self.alerts],
            "summary": {
                "newest_backup": format_timestamp(self.global_newest),
                "oldest_backup": format_timestamp(self.global_oldest),
                "total_backups": self.global_total,
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StatusReport":
        local = data.get("local") or {}
        remote = data.get("remote") or {}
        summary = data.get("summary") or {}
        return cls(
            timestamp=parse_timestamp(data.get("timestamp")) or utcnow(),
            health_verdict=HealthVerdict(data.get("status", HealthVerdict.WARNING.value)),
            per_category_counts={str(k): int(v) for k, v in (local.get("categories") or {}).items()},
            local_total=int(local.get("total", 0)),
            remote_count=int(remote.get("total", 0)),
            remote_error=remote.get("error"),
            alerts=tuple(Alert.from_dict(a) for a in data.get("alerts") or []),
            global_newest=parse_timestamp(summary.get("newest_backup")),
            global_oldest=parse_timestamp(summary.get("oldest_backup")),
            global_total=int(summary.get("total_backups", 0)),
        )
