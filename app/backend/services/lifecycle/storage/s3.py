"""Amazon S3 (and S3-compatible) storage backend."""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional

import boto3

from backend.services.lifecycle.models import ensure_utc, utcnow
from backend.services.lifecycle.storage.base import BackupObject, RemoteStorage


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class S3Config:
    """Configuration for an S3 bucket."""

    bucket: str
    region: str = "us-east-1"
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    endpoint_url: Optional[str] = None


def _content_type(path: Path) -> str:
    if path.name.endswith(".gz"):
        return "application/gzip"
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or "application/octet-stream"


class S3Storage(RemoteStorage):
    """S3 storage backend.

    The boto3 client is created lazily; tests inject a fake client.
    """

    name = "s3"

    def __init__(self, config: S3Config, *, client: Any = None):
        self._config = config
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            kwargs = {"region_name": self._config.region}
            if self._config.access_key_id and self._config.secret_access_key:
                kwargs["aws_access_key_id"] = self._config.access_key_id
                kwargs["aws_secret_access_key"] = self._config.secret_access_key
            if self._config.endpoint_url:
                kwargs["endpoint_url"] = self._config.endpoint_url
            self._client = boto3.client("s3", **kwargs)
        return self._client

    def list_backups(self, *, prefix: str) -> List[BackupObject]:
        """List objects under a prefix, newest first.

        Raises:
            botocore.exceptions.BotoCoreError: On transport/credential errors.
            botocore.exceptions.ClientError: On API errors.
        """

        paginator = self.client.get_paginator("list_objects_v2")
        backups: List[BackupObject] = []
        for page in paginator.paginate(Bucket=self._config.bucket, Prefix=prefix):
            for item in page.get("Contents") or []:
                key = item["Key"]
                if key.endswith("/"):
                    continue
                backups.append(
                    BackupObject(
                        key=key,
                        created_at=ensure_utc(item["LastModified"]),
                        size=item.get("Size"),
                    )
                )

        backups.sort(key=lambda b: b.created_at, reverse=True)
        return backups

    def upload_backup(self, *, local_path: Path, key: str, metadata: Mapping[str, str]) -> BackupObject:
        """Upload a file with object metadata."""

        self.client.upload_file(
            str(local_path),
            self._config.bucket,
            key,
            ExtraArgs={"ContentType": _content_type(local_path), "Metadata": dict(metadata)},
        )
        logger.debug("Uploaded s3://%s/%s", self._config.bucket, key)
        return BackupObject(key=key, created_at=utcnow(), size=local_path.stat().st_size)
