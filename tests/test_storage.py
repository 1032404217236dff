"""Tests for local and remote storage backends."""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from backend.services.lifecycle.errors import ConfigurationError
from backend.services.lifecycle.models import BackupCategory
from backend.services.lifecycle.storage.factory import build_remote_storage
from backend.services.lifecycle.storage.local import LocalBackupStore, LocalConfig
from backend.services.lifecycle.storage.s3 import S3Config, S3Storage
from backend.services.lifecycle.storage.sftp import SFTPStorage

from conftest import hours_ago, make_local_backup


def test_local_list_missing_directory(tmp_path):
    store = LocalBackupStore(LocalConfig(base_path=str(tmp_path / "nowhere")))
    assert store.list_backups(BackupCategory.DATABASE) == []


def test_local_list_is_newest_first_and_skips_hidden(store):
    make_local_backup(store, BackupCategory.CONFIG, "config_old.json", hours_ago(5))
    make_local_backup(store, BackupCategory.CONFIG, "config_new.json", hours_ago(1))
    make_local_backup(store, BackupCategory.CONFIG, ".config_wip.json.partial", hours_ago(0))

    names = [a.identifier for a in store.list_backups(BackupCategory.CONFIG)]
    assert names == ["config_new.json", "config_old.json"]


def test_local_delete_missing_file_returns_false(store):
    path = make_local_backup(store, BackupCategory.CODE, "code_a.tar.gz", hours_ago(1))
    artifact = store.list_backups(BackupCategory.CODE)[0]

    assert store.delete_backup(artifact) is True
    assert not path.exists()
    assert store.delete_backup(artifact) is False


def test_s3_list_backups_paginates_and_sorts():
    client = MagicMock()
    client.get_paginator.return_value.paginate.return_value = [
        {
            "Contents": [
                {"Key": "backups/database/database_1.sql.gz", "LastModified": datetime(2024, 1, 1, tzinfo=timezone.utc), "Size": 10},
                {"Key": "backups/database/", "LastModified": datetime(2024, 1, 1, tzinfo=timezone.utc), "Size": 0},
            ]
        },
        {"Contents": [{"Key": "backups/code/code_2.tar.gz", "LastModified": datetime(2024, 1, 3, tzinfo=timezone.utc), "Size": 20}]},
        {},
    ]
    storage = S3Storage(S3Config(bucket="bkt"), client=client)

    objects = storage.list_backups(prefix="backups/")

    client.get_paginator.assert_called_once_with("list_objects_v2")
    client.get_paginator.return_value.paginate.assert_called_once_with(Bucket="bkt", Prefix="backups/")
    assert [o.key for o in objects] == ["backups/code/code_2.tar.gz", "backups/database/database_1.sql.gz"]
    assert objects[0].size == 20


def test_s3_upload_sets_content_type_and_metadata(tmp_path):
    path = tmp_path / "database_1.sql.gz"
    path.write_bytes(b"abc")
    client = MagicMock()
    storage = S3Storage(S3Config(bucket="bkt"), client=client)

    uploaded = storage.upload_backup(local_path=path, key="backups/database/database_1.sql.gz", metadata={"project": "shop"})

    client.upload_file.assert_called_once_with(
        str(path),
        "bkt",
        "backups/database/database_1.sql.gz",
        ExtraArgs={"ContentType": "application/gzip", "Metadata": {"project": "shop"}},
    )
    assert uploaded.size == 3


def _settings(**overrides):
    values = dict(
        BACKUP_REMOTE_TYPE="s3",
        BACKUP_S3_BUCKET=None,
        BACKUP_S3_ENDPOINT_URL=None,
        AWS_REGION="eu-central-1",
        AWS_ACCESS_KEY_ID=None,
        AWS_SECRET_ACCESS_KEY=None,
        SFTP_HOST=None,
        SFTP_PORT=22,
        SFTP_USERNAME=None,
        SFTP_PASSWORD=None,
        SFTP_PRIVATE_KEY=None,
        SFTP_PRIVATE_KEY_PASSPHRASE=None,
        SFTP_BASE_PATH="/backups",
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_factory_none_and_unconfigured():
    assert build_remote_storage(_settings(BACKUP_REMOTE_TYPE="none")) is None
    assert build_remote_storage(_settings()) is None
    assert build_remote_storage(_settings(BACKUP_REMOTE_TYPE="sftp")) is None


def test_factory_builds_backends():
    assert isinstance(build_remote_storage(_settings(BACKUP_S3_BUCKET="bkt")), S3Storage)
    assert isinstance(build_remote_storage(_settings(BACKUP_REMOTE_TYPE="SFTP", SFTP_HOST="nas.local")), SFTPStorage)


def test_factory_rejects_unknown_type():
    with pytest.raises(ConfigurationError):
        build_remote_storage(_settings(BACKUP_REMOTE_TYPE="ftp"))


def _sftp_attr(filename, mode, mtime, size=0):
    import paramiko

    attr = paramiko.SFTPAttributes()
    attr.filename = filename
    attr.st_mode = mode
    attr.st_mtime = mtime
    attr.st_size = size
    return attr


def test_sftp_list_backups_walks_category_dirs():
    import stat
    from contextlib import contextmanager
    from unittest.mock import patch

    from backend.services.lifecycle.storage.sftp import SFTPConfig

    listing = {
        "/srv/backups": [_sftp_attr("database", stat.S_IFDIR | 0o755, 0)],
        "/srv/backups/database": [
            _sftp_attr("database_1.sql.gz", stat.S_IFREG | 0o644, 1_700_000_000, 10),
            _sftp_attr("database_2.sql.gz", stat.S_IFREG | 0o644, 1_700_000_600, 12),
        ],
    }
    sftp = MagicMock()
    sftp.listdir_attr.side_effect = lambda path: listing[path]

    @contextmanager
    def fake_session():
        yield sftp

    storage = SFTPStorage(SFTPConfig(host="nas.local", base_path="/srv"))
    with patch.object(storage, "_session", fake_session):
        objects = storage.list_backups(prefix="backups/")

    assert [o.key for o in objects] == ["backups/database/database_2.sql.gz", "backups/database/database_1.sql.gz"]
    assert objects[0].size == 12
