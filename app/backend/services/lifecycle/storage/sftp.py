"""SFTP storage backend.

Keys map to paths below `base_path`, e.g. `backups/database/x.sql.gz` is
stored at `{base_path}/backups/database/x.sql.gz`. SFTP has no object
metadata, so upload metadata is dropped.
"""

from __future__ import annotations

import io
import logging
import posixpath
import stat
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Mapping, Optional, Tuple

import paramiko

from backend.services.lifecycle.storage.base import BackupObject, RemoteStorage


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SFTPConfig:
    """Connection settings for an SFTP server."""

    host: str
    port: int = 22
    username: str = ""
    base_path: str = "/backups"

    password: Optional[str] = None
    private_key: Optional[str] = None
    private_key_passphrase: Optional[str] = None


def _object_from_attr(key: str, attr: paramiko.SFTPAttributes) -> BackupObject:
    return BackupObject(
        key=key,
        created_at=datetime.fromtimestamp(attr.st_mtime or 0, tz=timezone.utc),
        size=attr.st_size,
    )


class SFTPStorage(RemoteStorage):
    """Remote backups on an SFTP server."""

    name = "sftp"

    def __init__(self, config: SFTPConfig):
        self._config = config

    def _remote_path(self, key: str) -> str:
        base = self._config.base_path.rstrip("/") or "/"
        return posixpath.join(base, key.strip("/"))

    def list_backups(self, *, prefix: str) -> List[BackupObject]:
        """List files below the prefix directory, newest first.

        A missing prefix directory yields an empty list.
        """

        key_prefix = prefix.strip("/")
        with self._session() as sftp:
            backups = [
                _object_from_attr(posixpath.join(key_prefix, rel) if key_prefix else rel, attr)
                for rel, attr in self._iter_files(sftp, self._remote_path(key_prefix))
            ]

        backups.sort(key=lambda b: b.created_at, reverse=True)
        return backups

    def upload_backup(self, *, local_path: Path, key: str, metadata: Mapping[str, str]) -> BackupObject:
        """Upload a file to `{base_path}/{key}`, creating parent directories."""

        if metadata:
            logger.debug("SFTP does not store object metadata; dropping %s", sorted(metadata))

        remote_path = self._remote_path(key)
        with self._session() as sftp:
            self._makedirs(sftp, posixpath.dirname(remote_path))
            sftp.put(str(local_path), remote_path)
            attr = sftp.stat(remote_path)

        logger.debug("Uploaded sftp://%s%s", self._config.host, remote_path)
        return _object_from_attr(key, attr)

    def _iter_files(self, sftp: paramiko.SFTPClient, root: str) -> Iterator[Tuple[str, paramiko.SFTPAttributes]]:
        """Yield (path relative to root, attributes) for every file below root."""

        pending = [""]
        while pending:
            relative_dir = pending.pop()
            directory = posixpath.join(root, relative_dir) if relative_dir else root
            try:
                entries = sftp.listdir_attr(directory)
            except FileNotFoundError:
                continue

            for entry in entries:
                relative = posixpath.join(relative_dir, entry.filename) if relative_dir else entry.filename
                if stat.S_ISDIR(entry.st_mode or 0):
                    pending.append(relative)
                else:
                    yield relative, entry

    @staticmethod
    def _makedirs(sftp: paramiko.SFTPClient, path: str) -> None:
        current = ""
        for part in (p for p in path.split("/") if p):
            current = f"{current}/{part}"
            try:
                sftp.stat(current)
            except FileNotFoundError:
                sftp.mkdir(current)

    def _load_key(self) -> Optional[paramiko.PKey]:
        if not self._config.private_key:
            return None
        return paramiko.RSAKey.from_private_key(
            io.StringIO(self._config.private_key),
            password=self._config.private_key_passphrase,
        )

    @contextmanager
    def _session(self) -> Iterator[paramiko.SFTPClient]:
        """Open an authenticated SFTP session for the duration of the block."""

        transport = paramiko.Transport((self._config.host, self._config.port))
        try:
            pkey = self._load_key()
            if pkey is not None:
                transport.connect(username=self._config.username, pkey=pkey)
            else:
                transport.connect(username=self._config.username, password=self._config.password)
            client = paramiko.SFTPClient.from_transport(transport)
            try:
                yield client
            finally:
                client.close()
        finally:
            transport.close()
