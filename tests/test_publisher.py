"""Tests for remote publishing."""

from unittest.mock import MagicMock

import pytest

from backend.services.lifecycle.errors import PublishError
from backend.services.lifecycle.models import BackupCategory
from backend.services.lifecycle.publisher import (
    PUBLISH_FAILED,
    PUBLISH_SKIPPED,
    PUBLISH_UPLOADED,
    RemotePublisher,
    remote_key,
)

from conftest import hours_ago, make_artifact


@pytest.fixture
def artifact(tmp_path):
    path = tmp_path / "database_20240601T100000000000Z.sql.gz"
    path.write_bytes(b"dump")
    return make_artifact(BackupCategory.DATABASE, hours_ago(2), identifier=path.name, path=path)


def test_remote_key_layout(artifact):
    assert remote_key(artifact, "backups") == "backups/database/database_20240601T100000000000Z.sql.gz"
    assert remote_key(artifact, "/archive/") == "archive/database/database_20240601T100000000000Z.sql.gz"
    assert remote_key(artifact, "") == "database/database_20240601T100000000000Z.sql.gz"


def test_publish_without_storage_is_skipped(artifact):
    result = RemotePublisher(None, project="shop").publish(artifact)
    assert result.status == PUBLISH_SKIPPED
    assert result.error is None


def test_publish_uploads_with_metadata(artifact):
    storage = MagicMock()
    storage.name = "mock"

    result = RemotePublisher(storage, project="shop").publish(artifact)

    assert result.status == PUBLISH_UPLOADED
    kwargs = storage.upload_backup.call_args.kwargs
    assert kwargs["local_path"] == artifact.path
    assert kwargs["key"] == result.key
    assert kwargs["metadata"]["backup-type"] == "database"
    assert kwargs["metadata"]["project"] == "shop"
    assert kwargs["metadata"]["backup-date"]


def test_publish_failure_raises_publish_error(artifact):
    storage = MagicMock()
    storage.upload_backup.side_effect = RuntimeError("AccessDenied")

    with pytest.raises(PublishError) as excinfo:
        RemotePublisher(storage, project="shop").publish(artifact)

    assert excinfo.value.key == remote_key(artifact)
    assert "AccessDenied" in str(excinfo.value)


def test_publish_same_artifact_twice_uses_same_key(artifact):
    storage = MagicMock()
    publisher = RemotePublisher(storage, project="shop")

    first = publisher.publish(artifact)
    second = publisher.publish(artifact)

    assert first.key == second.key
    assert storage.upload_backup.call_count == 2


@pytest.mark.asyncio
async def test_publish_all_isolates_failures(tmp_path):
    artifacts = []
    for category in (BackupCategory.DATABASE, BackupCategory.CONFIG, BackupCategory.CODE):
        path = tmp_path / f"{category.value}_1.bin"
        path.write_bytes(b"x")
        artifacts.append(make_artifact(category, hours_ago(1), identifier=path.name, path=path))

    def upload(*, local_path, key, metadata):
        if "/config/" in key:
            raise ConnectionError("reset by peer")

    storage = MagicMock()
    storage.upload_backup.side_effect = upload

    results = await RemotePublisher(storage, project="shop", concurrency=2).publish_all(artifacts)

    assert [r.artifact for r in results] == artifacts
    assert [r.status for r in results] == [PUBLISH_UPLOADED, PUBLISH_FAILED, PUBLISH_UPLOADED]
    assert results[1].error == "reset by peer"
    assert results[1].to_dict()["key"] == "backups/config/config_1.bin"
