"""Tests for the retention policy."""

from datetime import timedelta
from unittest.mock import patch

from backend.services.lifecycle.errors import RetentionError
from backend.services.lifecycle.models import BackupCategory, CategoryInventory
from backend.services.lifecycle.retention import RetentionManager, plan_retention

from conftest import NOW, hours_ago, make_artifact, make_local_backup


def _artifacts(count, category=BackupCategory.DATABASE):
    return [make_artifact(category, NOW - timedelta(days=i)) for i in range(count)]


def test_plan_keeps_newest_and_deletes_oldest_first():
    backups = _artifacts(12)
    keep, delete = plan_retention(list(reversed(backups)), 10)

    assert keep == backups[:10]
    assert delete == [backups[11], backups[10]]


def test_plan_under_limit_deletes_nothing():
    keep, delete = plan_retention(_artifacts(3), 10)
    assert len(keep) == 3
    assert delete == []


def test_plan_never_empties_a_category():
    backups = _artifacts(4)
    keep, delete = plan_retention(backups, 0)
    assert keep == backups[:1]
    assert len(delete) == 3


def test_plan_empty_input():
    assert plan_retention([], 10) == ([], [])


def test_enforce_deletes_two_oldest_of_twelve(store):
    for i in range(12):
        make_local_backup(store, BackupCategory.DATABASE, f"database_{i:02d}.sql.gz", hours_ago(i + 1))

    manager = RetentionManager(store, max_keep=10)
    inventory = CategoryInventory.from_artifacts(BackupCategory.DATABASE, store.list_backups(BackupCategory.DATABASE))
    outcome = manager.enforce(BackupCategory.DATABASE, inventory)

    assert sorted(a.identifier for a in outcome.deleted) == ["database_10.sql.gz", "database_11.sql.gz"]
    remaining = store.list_backups(BackupCategory.DATABASE)
    assert len(remaining) == 10
    assert remaining[0].identifier == "database_00.sql.gz"


def test_enforce_twice_is_a_noop(store):
    for i in range(5):
        make_local_backup(store, BackupCategory.CONFIG, f"config_{i}.json", hours_ago(i + 1))

    manager = RetentionManager(store, max_keep=3)
    inventory = CategoryInventory.from_artifacts(BackupCategory.CONFIG, store.list_backups(BackupCategory.CONFIG))

    first = manager.enforce(BackupCategory.CONFIG, inventory)
    second = manager.enforce(BackupCategory.CONFIG, inventory)

    assert len(first.deleted) == 2
    assert second.deleted == []
    assert second.errors == []
    assert len(store.list_backups(BackupCategory.CONFIG)) == 3


def test_enforce_only_touches_its_category(store):
    for i in range(4):
        make_local_backup(store, BackupCategory.CODE, f"code_{i}.tar.gz", hours_ago(i + 1))
        make_local_backup(store, BackupCategory.CONFIG, f"config_{i}.json", hours_ago(i + 1))

    manager = RetentionManager(store, max_keep=1)
    outcomes = manager.enforce_all([BackupCategory.CODE])

    assert len(outcomes) == 1
    assert len(store.list_backups(BackupCategory.CODE)) == 1
    assert len(store.list_backups(BackupCategory.CONFIG)) == 4


def test_enforce_records_delete_failures_and_continues(store):
    for i in range(4):
        make_local_backup(store, BackupCategory.DATABASE, f"database_{i}.sql.gz", hours_ago(i + 1))

    manager = RetentionManager(store, max_keep=1)
    real_delete = store.delete_backup

    def flaky_delete(artifact):
        if artifact.identifier == "database_3.sql.gz":
            raise PermissionError("read-only")
        return real_delete(artifact)

    with patch.object(store, "delete_backup", side_effect=flaky_delete):
        outcome = manager.enforce_all([BackupCategory.DATABASE])[0]

    assert [a.identifier for a in outcome.deleted] == ["database_2.sql.gz", "database_1.sql.gz"]
    assert len(outcome.errors) == 1
    assert isinstance(outcome.errors[0], RetentionError)
    assert "read-only" in str(outcome.errors[0])


def test_enforce_all_on_missing_directory(store):
    outcome = RetentionManager(store).enforce_all([BackupCategory.DATABASE])[0]
    assert outcome.kept == []
    assert outcome.deleted == []
