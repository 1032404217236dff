"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from api.settings import Settings, get_settings
from backend.services.lifecycle.models import BackupCategory
from main import app

from conftest import make_local_backup, hours_ago


ADMIN = {"X-Admin-Key": "s3cret"}


@pytest.fixture
def api_settings(backup_root, tmp_path):
    return Settings(
        _env_file=None,
        ADMIN_API_KEY="s3cret",
        BACKUP_DIR=str(backup_root),
        BACKUP_SOURCE_DIR=str(tmp_path),
        BACKUP_REMOTE_TYPE="none",
        DATABASE_URL=None,
    )


@pytest.fixture
def client(api_settings):
    app.dependency_overrides[get_settings] = lambda: api_settings
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_health_and_version(client):
    assert client.get("/health").json() == {"status": "OK"}
    assert "IMAGE_TAG" in client.get("/version").json()


def test_missing_key_is_rejected(client):
    assert client.get("/backups/status").status_code == 401
    assert client.get("/backups/status", headers={"X-Admin-Key": "wrong"}).status_code == 403


def test_unconfigured_key_is_unavailable(api_settings, client):
    api_settings.ADMIN_API_KEY = None
    assert client.get("/backups/status", headers=ADMIN).status_code == 503


def test_status_before_any_monitoring_run(client):
    assert client.get("/backups/status", headers=ADMIN).status_code == 404


def test_monitor_then_status(client, store):
    make_local_backup(store, BackupCategory.DATABASE, "database_a.sql.gz", hours_ago(1))

    response = client.post("/backups/monitor", headers=ADMIN)
    assert response.status_code == 200
    body = response.json()
    assert body["local"]["total"] == 1
    assert body["remote"]["error"] is None

    status = client.get("/backups/status", headers=ADMIN)
    assert status.status_code == 200
    assert status.json()["summary"]["total_backups"] == 1


def test_run_without_database_url_is_bad_request(client):
    response = client.post("/backups/run", json={"backup_type": "database"}, headers=ADMIN)
    assert response.status_code == 400
    assert "DATABASE_URL" in response.json()["detail"]


def test_run_config_backup(client, tmp_path, backup_root):
    (tmp_path / "pyproject.toml").write_text("[project]\nname = 'demo'\n")

    response = client.post("/backups/run", json={"backup_type": "config", "trigger": "manual"}, headers=ADMIN)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["categories"] == ["config"]
    assert body["uploads"][0]["status"] == "skipped"
    assert len(list((backup_root / "config").iterdir())) == 1
