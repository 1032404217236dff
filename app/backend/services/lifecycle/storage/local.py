"""Local filesystem storage for backup artifacts.

Artifacts are stored one directory per category under the backup root:
`<base_path>/database/`, `<base_path>/config/`, `<base_path>/code/`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from backend.services.lifecycle.models import BackupArtifact, BackupCategory, BackupLocation


logger = logging.getLogger(__name__)

# In-progress files written by producers before their final rename.
PARTIAL_SUFFIX = ".partial"


@dataclass
class LocalConfig:
    """Configuration for local storage.

    Attributes:
        base_path: Backup root directory.
    """

    base_path: str = "./backups"


class LocalBackupStore:
    """Local backup directory, partitioned by category."""

    def __init__(self, config: LocalConfig):
        """Initialize local storage.

        Args:
            config: Local storage configuration.
        """
        self.config = config
        self.base_path = Path(config.base_path)

    def category_dir(self, category: BackupCategory) -> Path:
        return self.base_path / category.value

    def ensure_category_dir(self, category: BackupCategory) -> Path:
        """Ensure the directory for a category exists.

        Args:
            category: Backup category.

        Returns:
            Path: The category directory.
        """
        path = self.category_dir(category)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def stat_artifact(self, category: BackupCategory, path: Path) -> BackupArtifact:
        """Build an artifact handle from a file on disk.

        Raises:
            OSError: When the file cannot be stat'd.
        """
        stat = path.stat()
        return BackupArtifact(
            category=category,
            identifier=path.name,
            location=BackupLocation.LOCAL,
            size_bytes=stat.st_size,
            created_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            path=path,
        )

    def list_backups(self, category: BackupCategory) -> List[BackupArtifact]:
        """List the artifacts of one category.

        Args:
            category: Backup category.

        Returns:
            List[BackupArtifact]: Artifacts, newest first. A missing directory
            yields an empty list.
        """
        directory = self.category_dir(category)
        if not directory.is_dir():
            return []

        backups: List[BackupArtifact] = []
        for entry in directory.iterdir():
            if not entry.is_file() or entry.name.startswith(".") or entry.name.endswith(PARTIAL_SUFFIX):
                continue
            try:
                backups.append(self.stat_artifact(category, entry))
            except FileNotFoundError:
                # Deleted between listing and stat.
                continue

        backups.sort(key=lambda b: b.created_at, reverse=True)
        return backups

    def delete_backup(self, artifact: BackupArtifact) -> bool:
        """Delete one local artifact.

        Args:
            artifact: Artifact to delete.

        Returns:
            bool: True when a file was removed, False when it was already gone.

        Raises:
            OSError: When the file exists but cannot be removed.
        """
        filepath = artifact.path or (self.category_dir(artifact.category) / artifact.identifier)
        try:
            filepath.unlink()
        except FileNotFoundError:
            logger.debug("Backup already removed: %s", filepath)
            return False
        return True
