"""Tests for Telegram alert notifications."""

import json

import httpx
import pytest

from backend.services.lifecycle.models import Alert, AlertKind, HealthVerdict, Severity, StatusReport
from backend.services.lifecycle.notification_service import (
    NotificationConfig,
    NotificationService,
    format_report_message,
    normalize_min_severity,
)

from conftest import NOW, hours_ago


def _report(*alerts):
    return StatusReport(
        timestamp=NOW,
        health_verdict=HealthVerdict.WARNING if alerts else HealthVerdict.HEALTHY,
        per_category_counts={"database": 1, "config": 0, "code": 0},
        local_total=1,
        remote_count=0,
        remote_error=None,
        alerts=tuple(alerts),
        global_newest=hours_ago(30),
        global_oldest=hours_ago(30),
        global_total=1,
    )


STALE = Alert(AlertKind.STALE_BACKUP, Severity.HIGH, "Most recent backup is 30 hours old")
FEW = Alert(AlertKind.INSUFFICIENT_BACKUPS, Severity.MEDIUM, "Only 1 backups found (minimum 3)")

CONFIG = NotificationConfig(telegram_token="TOKEN", chat_id="42", project="shop <prod>")


def test_normalize_min_severity():
    assert normalize_min_severity("Critical") == Severity.CRITICAL
    assert normalize_min_severity("bogus") == Severity.HIGH
    assert normalize_min_severity(None) == Severity.HIGH


def test_message_escapes_html_and_lists_alerts():
    message = format_report_message(_report(STALE, FEW), project="shop <prod>")
    assert "shop &lt;prod&gt;" in message
    assert "[high] Most recent backup is 30 hours old" in message
    assert "[medium] Only 1 backups found" in message


@pytest.mark.asyncio
async def test_disabled_without_credentials():
    result = await NotificationService(NotificationConfig()).notify(_report(STALE))
    assert result == {"sent": False, "reason": "Telegram not configured"}


@pytest.mark.asyncio
async def test_below_threshold_is_not_sent():
    def handler(request):
        raise AssertionError("no request expected")

    service = NotificationService(CONFIG, transport=httpx.MockTransport(handler))
    result = await service.notify(_report(FEW))
    assert result["sent"] is False


@pytest.mark.asyncio
async def test_sends_message():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 7}})

    service = NotificationService(CONFIG, transport=httpx.MockTransport(handler))
    result = await service.notify(_report(STALE))

    assert result == {"sent": True, "message_id": 7}
    assert seen[0].url.path == "/botTOKEN/sendMessage"
    payload = json.loads(seen[0].content)
    assert payload["chat_id"] == "42"
    assert payload["parse_mode"] == "HTML"


@pytest.mark.asyncio
async def test_telegram_rejection_is_reported():
    transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"ok": False, "description": "chat not found"}))
    result = await NotificationService(CONFIG, transport=transport).notify(_report(STALE))
    assert result == {"sent": False, "error": "chat not found"}


@pytest.mark.asyncio
async def test_transport_errors_never_raise():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    result = await NotificationService(CONFIG, transport=httpx.MockTransport(handler)).notify(_report(STALE))
    assert result["sent"] is False
    assert "unreachable" in result["error"]
