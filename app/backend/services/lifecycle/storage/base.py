"""Base interface for remote backup storage."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Mapping, Optional


@dataclass(frozen=True)
class BackupObject:
    """Metadata about a stored remote object."""

    key: str
    created_at: datetime
    size: Optional[int] = None


class RemoteStorage(ABC):
    """Abstract base class for remote storage backends."""

    name: str = "remote"

    @abstractmethod
    def list_backups(self, *, prefix: str) -> List[BackupObject]:
        """List all objects stored under a key prefix.

        Args:
            prefix: Key prefix, e.g. "backups/".

        Returns:
            List[BackupObject]: Matching objects.
        """

    @abstractmethod
    def upload_backup(self, *, local_path: Path, key: str, metadata: Mapping[str, str]) -> BackupObject:
        """Upload a local file, overwriting any object stored under the same key.

        Args:
            local_path: Path to the local file.
            key: Destination key.
            metadata: Object metadata (backends without metadata ignore it).

        Returns:
            BackupObject: Metadata about the uploaded object.
        """
