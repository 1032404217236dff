"""Remote publishing of backup artifacts.

Artifacts are uploaded under `{prefix}/{category}/{identifier}`. Publishing
the same artifact twice overwrites the same key. When no remote storage is
configured every publish is skipped, which is not a failure.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from fastapi.concurrency import run_in_threadpool

from backend.services.lifecycle.errors import PublishError
from backend.services.lifecycle.models import BackupArtifact, format_timestamp, utcnow
from backend.services.lifecycle.storage.base import RemoteStorage


logger = logging.getLogger(__name__)

PUBLISH_UPLOADED = "uploaded"
PUBLISH_SKIPPED = "skipped"
PUBLISH_FAILED = "failed"


@dataclass(frozen=True)
class PublishResult:
    """Outcome of publishing one artifact."""

    artifact: BackupArtifact
    key: str
    status: str
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "identifier": self.artifact.identifier,
            "category": self.artifact.category.value,
            "key": self.key,
            "status": self.status,
            "error": self.error,
        }


def remote_key(artifact: BackupArtifact, prefix: str = "backups") -> str:
    """Return the deterministic remote key for an artifact."""

    base = prefix.strip("/")
    if base:
        return f"{base}/{artifact.category.value}/{artifact.identifier}"
    return f"{artifact.category.value}/{artifact.identifier}"


class RemotePublisher:
    """Upload local artifacts to remote storage.

    Args:
        storage: Remote backend, or None when remote storage is unconfigured.
        project: Project tag attached to every object.
        prefix: Key prefix shared with the inventory monitor.
        concurrency: Maximum uploads in flight in `publish_all`.
    """

    def __init__(
        self,
        storage: Optional[RemoteStorage],
        *,
        project: str,
        prefix: str = "backups",
        concurrency: int = 4,
    ):
        self.storage = storage
        self.project = project
        self.prefix = prefix
        self.concurrency = max(1, int(concurrency))

    @property
    def configured(self) -> bool:
        return self.storage is not None

    def metadata_for(self, artifact: BackupArtifact) -> Dict[str, str]:
        return {
            "backup-date": format_timestamp(utcnow()) or "",
            "backup-created-at": format_timestamp(artifact.created_at) or "",
            "backup-type": artifact.category.value,
            "project": self.project,
        }

    def publish(self, artifact: BackupArtifact) -> PublishResult:
        """Publish one artifact.

        Returns:
            PublishResult: `uploaded`, or `skipped` when unconfigured.

        Raises:
            PublishError: When the upload fails.
        """

        key = remote_key(artifact, self.prefix)
        if self.storage is None:
            logger.info("Remote storage not configured, skipping upload of %s", artifact.identifier)
            return PublishResult(artifact=artifact, key=key, status=PUBLISH_SKIPPED)

        if artifact.path is None:
            raise PublishError(artifact, "artifact has no local path", key=key)

        logger.info("Uploading %s to %s: %s", artifact.identifier, self.storage.name, key)
        try:
            self.storage.upload_backup(local_path=artifact.path, key=key, metadata=self.metadata_for(artifact))
        except Exception as exc:
            raise PublishError(artifact, exc, key=key) from exc

        logger.info("Uploaded %s", key)
        return PublishResult(artifact=artifact, key=key, status=PUBLISH_UPLOADED)

    async def publish_all(self, artifacts: Iterable[BackupArtifact]) -> List[PublishResult]:
        """Publish artifacts concurrently, bounded by `concurrency`.

        Failures are logged and returned as `failed` results; they never
        abort the other uploads.

        Returns:
            List[PublishResult]: One result per artifact, in input order.
        """

        semaphore = asyncio.Semaphore(self.concurrency)

        async def _one(artifact: BackupArtifact) -> PublishResult:
            async with semaphore:
                try:
                    return await run_in_threadpool(self.publish, artifact)
                except PublishError as exc:
                    logger.error("%s", exc)
                    return PublishResult(
                        artifact=artifact,
                        key=exc.key or remote_key(artifact, self.prefix),
                        status=PUBLISH_FAILED,
                        error=str(exc.cause),
                    )

        return list(await asyncio.gather(*(_one(a) for a in artifacts)))
