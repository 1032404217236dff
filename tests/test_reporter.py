"""Tests for status report persistence."""

import json

from backend.services.lifecycle.alerts import evaluate_alerts
from backend.services.lifecycle.models import (
    BackupCategory,
    BackupLocation,
    GlobalView,
    HealthVerdict,
    Inventory,
)
from backend.services.lifecycle.reporter import StatusReporter, write_json_atomic

from conftest import NOW, hours_ago, make_artifact


def _inventories():
    local = Inventory.from_artifacts(
        BackupLocation.LOCAL,
        [
            make_artifact(BackupCategory.DATABASE, hours_ago(30)),
            make_artifact(BackupCategory.CONFIG, hours_ago(31)),
        ],
    )
    remote = Inventory.from_artifacts(
        BackupLocation.REMOTE,
        [make_artifact(BackupCategory.CODE, hours_ago(32), location=BackupLocation.REMOTE)],
    )
    return local, remote


def test_build_summarizes_inventories(tmp_path):
    local, remote = _inventories()
    alerts = evaluate_alerts(GlobalView.merge(local, remote), now=NOW)
    report = StatusReporter(tmp_path / "status_report.json").build(local=local, remote=remote, alerts=alerts, now=NOW)

    assert report.health_verdict == HealthVerdict.WARNING
    assert report.local_total == 2
    assert report.remote_count == 1
    assert report.global_total == 3
    assert report.per_category_counts == {"database": 1, "config": 1, "code": 0}
    assert report.global_newest == hours_ago(30)
    assert report.global_oldest == hours_ago(32)


def test_write_and_read_back(tmp_path):
    local, remote = _inventories()
    reporter = StatusReporter(tmp_path / "reports" / "status_report.json")
    alerts = evaluate_alerts(GlobalView.merge(local, remote), now=NOW)
    report = reporter.build(local=local, remote=remote, alerts=alerts, now=NOW)

    reporter.write(report)
    data = json.loads(reporter.report_path.read_text())

    assert data["status"] == "warning"
    assert data["local"]["total"] == 2
    assert data["remote"] == {"total": 1, "error": None}
    assert data["summary"]["total_backups"] == 3
    assert data["alerts"][0]["severity"] == "high"
    assert reporter.read() == report


def test_read_missing_report(tmp_path):
    assert StatusReporter(tmp_path / "missing.json").read() is None


def test_overwrite_leaves_no_temp_files(tmp_path):
    path = tmp_path / "status_report.json"
    write_json_atomic(path, {"run": 1})
    write_json_atomic(path, {"run": 2})

    assert json.loads(path.read_text()) == {"run": 2}
    assert [p.name for p in tmp_path.iterdir()] == ["status_report.json"]
