"""Shared fixtures for backup lifecycle tests."""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Keep file logging out of /app/logs when api.settings / main are imported.
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="backup-lifecycle-logs-"))

from backend.services.lifecycle.models import BackupArtifact, BackupCategory, BackupLocation
from backend.services.lifecycle.storage.local import LocalBackupStore, LocalConfig


NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def backup_root(tmp_path):
    root = tmp_path / "backups"
    root.mkdir()
    return root


@pytest.fixture
def store(backup_root):
    return LocalBackupStore(LocalConfig(base_path=str(backup_root)))


def make_local_backup(store, category, name, created_at, size=16):
    """Write a backup file with a controlled modification time."""
    directory = store.ensure_category_dir(category)
    path = directory / name
    path.write_bytes(b"x" * size)
    stamp = created_at.timestamp()
    os.utime(path, (stamp, stamp))
    return path


def make_artifact(category=BackupCategory.DATABASE, created_at=NOW, identifier=None, location=BackupLocation.LOCAL, size=16, path=None):
    identifier = identifier or f"{category.value}_{created_at.strftime('%Y%m%dT%H%M%S%f')}Z.bin"
    return BackupArtifact(
        category=category,
        identifier=identifier,
        location=location,
        size_bytes=size,
        created_at=created_at,
        path=path,
    )


def hours_ago(hours, now=NOW):
    return now - timedelta(hours=hours)
