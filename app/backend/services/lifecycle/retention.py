"""Retention policy for local backups.

Keeps the newest `max_keep` artifacts of a category and deletes the rest,
oldest first. Only local copies are deleted; remote storage is archival and
never pruned here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from backend.services.lifecycle.errors import RetentionError
from backend.services.lifecycle.models import BackupArtifact, BackupCategory, CategoryInventory, ensure_utc
from backend.services.lifecycle.storage.local import LocalBackupStore


logger = logging.getLogger(__name__)


def plan_retention(
    backups: Sequence[BackupArtifact],
    max_keep: int,
) -> Tuple[List[BackupArtifact], List[BackupArtifact]]:
    """Return (keep, delete) lists for a single category.

    Args:
        backups: Existing artifacts, in any order.
        max_keep: Number of newest artifacts to keep. Values below 1 are
            raised to 1 so a category is never emptied by retention.

    Returns:
        Tuple[List[BackupArtifact], List[BackupArtifact]]: Keep list (newest
        first) and delete list (oldest first).
    """

    if not backups:
        return [], []

    keep_count = max(int(max_keep), 1)
    newest_first = sorted(backups, key=lambda b: (ensure_utc(b.created_at), b.identifier), reverse=True)

    keep = newest_first[:keep_count]
    delete = list(reversed(newest_first[keep_count:]))
    return keep, delete


@dataclass
class RetentionOutcome:
    """Result of enforcing retention on one category."""

    category: BackupCategory
    kept: List[BackupArtifact] = field(default_factory=list)
    deleted: List[BackupArtifact] = field(default_factory=list)
    errors: List[RetentionError] = field(default_factory=list)


class RetentionManager:
    """Apply the retention policy to the local backup store."""

    def __init__(self, store: LocalBackupStore, *, max_keep: int = 10):
        self.store = store
        self.max_keep = max_keep

    def enforce(
        self,
        category: BackupCategory,
        inventory: CategoryInventory,
        max_keep: Optional[int] = None,
    ) -> RetentionOutcome:
        """Delete artifacts beyond the newest `max_keep`.

        Deletion failures are logged and skipped. Files already gone are not
        counted as deleted, so enforcing twice with the same inventory is a
        no-op the second time.

        Args:
            category: Category being pruned.
            inventory: Local inventory of that category.
            max_keep: Override for the configured maximum.

        Returns:
            RetentionOutcome: Kept, deleted and failed artifacts.
        """

        limit = self.max_keep if max_keep is None else max_keep
        if limit < 1:
            logger.warning("max_keep=%s would empty %s backups; keeping 1", limit, category.value)

        candidates = [a for a in inventory.artifacts if a.category == category]
        keep, delete = plan_retention(candidates, limit)
        outcome = RetentionOutcome(category=category, kept=keep)

        for artifact in delete:
            try:
                removed = self.store.delete_backup(artifact)
            except OSError as exc:
                error = RetentionError(artifact, exc)
                logger.warning("%s", error)
                outcome.errors.append(error)
                continue
            if removed:
                logger.info("Deleted old %s backup: %s", category.value, artifact.identifier)
                outcome.deleted.append(artifact)

        logger.info(
            "Retention for %s: kept %s, deleted %s, failed %s",
            category.value,
            len(outcome.kept),
            len(outcome.deleted),
            len(outcome.errors),
        )
        return outcome

    def enforce_all(self, categories: Sequence[BackupCategory]) -> List[RetentionOutcome]:
        """Scan and prune each category from the current local state."""

        outcomes: List[RetentionOutcome] = []
        for category in categories:
            try:
                listed = self.store.list_backups(category)
            except OSError as exc:
                error = RetentionError(self.store.category_dir(category), exc)
                logger.warning("%s", error)
                outcomes.append(RetentionOutcome(category=category, errors=[error]))
                continue
            inventory = CategoryInventory.from_artifacts(category, listed)
            outcomes.append(self.enforce(category, inventory))
        return outcomes
