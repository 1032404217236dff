"""Inventory scanning of local and remote backups.

The local scan lists each category directory. The remote scan lists objects
under the backups prefix and maps each key back to its category. A remote
scan never raises: failures produce an empty inventory carrying the error so
that monitoring always yields a report.
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
from typing import List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool

from backend.services.lifecycle.errors import ScanError
from backend.services.lifecycle.models import (
    ALL_CATEGORIES,
    BackupArtifact,
    BackupCategory,
    BackupLocation,
    Inventory,
    utcnow,
)
from backend.services.lifecycle.storage.base import BackupObject, RemoteStorage
from backend.services.lifecycle.storage.local import LocalBackupStore


logger = logging.getLogger(__name__)


def category_from_key(key: str, prefix: str = "backups") -> Optional[BackupCategory]:
    """Derive the category of a remote object from its key.

    Supports `{prefix}/{category}/{name}` keys and flat
    `{prefix}/{category}_{stamp}.{ext}` keys.

    Returns:
        Optional[BackupCategory]: Category, or None when unrecognized.
    """

    relative = key
    base = prefix.strip("/")
    if base and relative.startswith(base + "/"):
        relative = relative[len(base) + 1 :]

    parts = [p for p in relative.split("/") if p]
    if len(parts) > 1:
        try:
            return BackupCategory(parts[0])
        except ValueError:
            pass

    name = posixpath.basename(relative)
    head = name.split("_", 1)[0]
    try:
        return BackupCategory(head)
    except ValueError:
        return None


def _remote_artifact(obj: BackupObject, category: BackupCategory) -> BackupArtifact:
    return BackupArtifact(
        category=category,
        identifier=posixpath.basename(obj.key),
        location=BackupLocation.REMOTE,
        size_bytes=int(obj.size or 0),
        created_at=obj.created_at,
        key=obj.key,
    )


class InventoryMonitor:
    """Scan local and remote storage into per-category inventories."""

    def __init__(
        self,
        local_store: LocalBackupStore,
        remote_storage: Optional[RemoteStorage] = None,
        *,
        remote_prefix: str = "backups",
    ):
        self.local_store = local_store
        self.remote_storage = remote_storage
        self.remote_prefix = remote_prefix

    def scan_local(self) -> Inventory:
        """List every category directory of the local backup store.

        A category that cannot be listed is logged and counted as empty.
        """

        artifacts: List[BackupArtifact] = []
        for category in ALL_CATEGORIES:
            try:
                artifacts.extend(self.local_store.list_backups(category))
            except OSError as exc:
                logger.warning("%s", ScanError(BackupLocation.LOCAL, f"{category.value}: {exc}"))

        inventory = Inventory.from_artifacts(BackupLocation.LOCAL, artifacts)
        logger.info("Local backups: %s (%s)", inventory.count, inventory.counts())
        now = utcnow()
        for category in ALL_CATEGORIES:
            newest = inventory.for_category(category).artifacts[:1]
            if newest:
                logger.debug(
                    "Newest local %s backup %s is %.1f hours old",
                    category.value,
                    newest[0].identifier,
                    newest[0].age_ms(now) / 3_600_000,
                )
        return inventory

    def scan_remote(self) -> Inventory:
        """List remote objects under the backups prefix.

        Returns:
            Inventory: Remote inventory; empty with `error` set when the
            listing failed, empty without error when unconfigured.
        """

        if self.remote_storage is None:
            logger.info("Remote storage not configured; remote inventory is empty")
            return Inventory.empty(BackupLocation.REMOTE)

        prefix = self.remote_prefix.strip("/") + "/" if self.remote_prefix.strip("/") else ""
        try:
            objects = self.remote_storage.list_backups(prefix=prefix)
        except Exception as exc:
            error = ScanError(BackupLocation.REMOTE, exc)
            logger.error("%s", error)
            return Inventory.empty(BackupLocation.REMOTE, error=str(exc) or exc.__class__.__name__)

        artifacts: List[BackupArtifact] = []
        for obj in objects:
            category = category_from_key(obj.key, self.remote_prefix)
            if category is None:
                logger.warning("Skipping remote object with unknown category: %s", obj.key)
                continue
            artifacts.append(_remote_artifact(obj, category))

        inventory = Inventory.from_artifacts(BackupLocation.REMOTE, artifacts)
        logger.info("Remote backups: %s (%s)", inventory.count, inventory.counts())
        return inventory

    async def scan(self) -> Tuple[Inventory, Inventory]:
        """Run the local and remote scans concurrently.

        Returns:
            Tuple[Inventory, Inventory]: (local, remote)
        """

        local, remote = await asyncio.gather(
            run_in_threadpool(self.scan_local),
            run_in_threadpool(self.scan_remote),
        )
        return local, remote
