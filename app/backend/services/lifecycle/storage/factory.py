"""Remote storage factory.

Converts settings into a concrete remote storage backend. Returns None when
remote storage is not configured; callers treat that as "publishing
disabled", not as a failure.

Adding a new backend should only require implementing it under
`backend.services.lifecycle.storage.*` and extending `build_remote_storage`.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from backend.services.lifecycle.errors import ConfigurationError
from backend.services.lifecycle.storage.base import RemoteStorage
from backend.services.lifecycle.storage.s3 import S3Config, S3Storage
from backend.services.lifecycle.storage.sftp import SFTPConfig, SFTPStorage


logger = logging.getLogger(__name__)

REMOTE_TYPES = ("s3", "sftp", "none")


def build_remote_storage(settings: Any) -> Optional[RemoteStorage]:
    """Instantiate the remote storage backend selected by settings.

    Args:
        settings: Settings object (see `api.settings.Settings`).

    Returns:
        Optional[RemoteStorage]: Backend, or None when unconfigured.

    Raises:
        ConfigurationError: When the remote type is unsupported.
    """

    remote_type = str(settings.BACKUP_REMOTE_TYPE or "none").strip().lower()

    if remote_type == "none":
        return None

    if remote_type == "s3":
        if not settings.BACKUP_S3_BUCKET:
            logger.info("BACKUP_S3_BUCKET not set; remote storage disabled")
            return None
        return S3Storage(
            S3Config(
                bucket=str(settings.BACKUP_S3_BUCKET),
                region=str(settings.AWS_REGION or "us-east-1"),
                access_key_id=settings.AWS_ACCESS_KEY_ID,
                secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                endpoint_url=settings.BACKUP_S3_ENDPOINT_URL,
            )
        )

    if remote_type == "sftp":
        if not settings.SFTP_HOST:
            logger.info("SFTP_HOST not set; remote storage disabled")
            return None
        return SFTPStorage(
            SFTPConfig(
                host=str(settings.SFTP_HOST),
                port=int(settings.SFTP_PORT or 22),
                username=str(settings.SFTP_USERNAME or ""),
                base_path=str(settings.SFTP_BASE_PATH or "/backups"),
                password=settings.SFTP_PASSWORD,
                private_key=settings.SFTP_PRIVATE_KEY,
                private_key_passphrase=settings.SFTP_PRIVATE_KEY_PASSPHRASE,
            )
        )

    raise ConfigurationError(
        f"Unsupported remote storage type: {remote_type} (expected one of {', '.join(REMOTE_TYPES)})"
    )
