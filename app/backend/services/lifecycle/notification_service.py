"""Alert notifications for monitoring runs.

Sends a Telegram message summarizing a status report when at least one alert
reaches the configured minimum severity. Notification failures are logged
and returned, never raised: a monitoring run must always complete.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from backend.services.lifecycle.models import Severity, StatusReport


logger = logging.getLogger(__name__)

_SEVERITY_ICONS = {
    Severity.CRITICAL: "❌",
    Severity.HIGH: "⚠️",
    Severity.MEDIUM: "⚠️",
    Severity.LOW: "ℹ️",
}


def normalize_min_severity(value: Any) -> Severity:
    """Normalize a severity label, defaulting to high.

    Args:
        value: Severity value.

    Returns:
        Severity: Parsed severity.
    """

    try:
        return Severity(str(value or "").strip().lower())
    except ValueError:
        return Severity.HIGH


@dataclass(frozen=True)
class NotificationConfig:
    """Telegram notification settings."""

    telegram_token: Optional[str] = None
    chat_id: Optional[str] = None
    min_severity: Severity = Severity.HIGH
    project: str = "app-stack"
    timeout_seconds: float = 10.0

    @property
    def enabled(self) -> bool:
        return bool(self.telegram_token and self.chat_id)


def format_report_message(report: StatusReport, *, project: str) -> str:
    """Render a status report as Telegram HTML."""

    lines = [
        f"<b>Backup status: {report.health_verdict.value.upper()}</b> ({html.escape(project)})",
        f"Local: {report.local_total} | Remote: {report.remote_count} | Total: {report.global_total}",
    ]
    if report.global_newest is not None:
        lines.append(f"Newest: {report.global_newest.isoformat()}")
    for alert in report.alerts:
        icon = _SEVERITY_ICONS.get(alert.severity, "")
        lines.append(f"{icon} [{alert.severity.value}] {html.escape(alert.message)}")
    return "\n".join(lines)


class NotificationService:
    """Send monitoring alerts to Telegram."""

    def __init__(self, config: NotificationConfig, *, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    def should_notify(self, report: StatusReport) -> bool:
        threshold = self.config.min_severity.rank
        return any(alert.severity.rank >= threshold for alert in report.alerts)

    async def notify(self, report: StatusReport) -> Dict[str, Any]:
        """Send a notification for the report when it warrants one.

        Returns:
            Dict[str, Any]: `{"sent": bool, ...}` with a reason or error.
        """

        if not self.config.enabled:
            logger.debug("Notifications skipped (Telegram not configured)")
            return {"sent": False, "reason": "Telegram not configured"}

        if not self.should_notify(report):
            logger.debug(
                "Notifications skipped (no alert at or above %s)",
                self.config.min_severity.value,
            )
            return {"sent": False, "reason": "Below minimum severity"}

        url = f"https://api.telegram.org/bot{self.config.telegram_token}/sendMessage"
        payload = {
            "chat_id": self.config.chat_id,
            "text": format_report_message(report, project=self.config.project),
            "parse_mode": "HTML",
        }

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.config.timeout_seconds) as client:
                response = await client.post(url, json=payload)
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.exception("Telegram send failed chat_id=%s", self.config.chat_id)
            return {"sent": False, "error": str(exc)}

        if data.get("ok"):
            logger.info("Backup alert notification sent chat_id=%s", self.config.chat_id)
            return {"sent": True, "message_id": (data.get("result") or {}).get("message_id")}

        error = data.get("description", "Unknown error")
        logger.warning("Telegram rejected notification chat_id=%s: %s", self.config.chat_id, error)
        return {"sent": False, "error": error}
