"""Status report persistence.

A monitoring run produces one `StatusReport` which replaces the previous one
at a fixed path. Writes go to a temporary file in the same directory and are
renamed into place, so readers never observe a partial report.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from backend.services.lifecycle.alerts import health_verdict, sort_alerts
from backend.services.lifecycle.models import Alert, GlobalView, Inventory, StatusReport


logger = logging.getLogger(__name__)


def write_json_atomic(path: Path, payload: Mapping[str, Any]) -> Path:
    """Write JSON to path via write-to-temp-then-rename.

    Args:
        path: Destination file.
        payload: JSON-serializable mapping.

    Returns:
        Path: The destination path.
    """

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    return path


class StatusReporter:
    """Build and persist status reports."""

    def __init__(self, report_path: Path):
        self.report_path = Path(report_path)

    def build(
        self,
        *,
        local: Inventory,
        remote: Inventory,
        alerts: Sequence[Alert],
        now: datetime,
    ) -> StatusReport:
        """Merge inventories and alerts into a report."""

        view = GlobalView.merge(local, remote)
        ordered = tuple(sort_alerts(alerts))
        return StatusReport(
            timestamp=now,
            health_verdict=health_verdict(ordered),
            per_category_counts=local.counts(),
            local_total=local.count,
            remote_count=remote.count,
            remote_error=remote.error,
            alerts=ordered,
            global_newest=view.newest,
            global_oldest=view.oldest,
            global_total=view.total,
        )

    def write(self, report: StatusReport) -> Path:
        path = write_json_atomic(self.report_path, report.to_dict())
        logger.info("Status report saved: %s", path)
        return path

    def read(self) -> Optional[StatusReport]:
        """Load the last persisted report.

        Returns:
            Optional[StatusReport]: The report, or None when none was written yet.
        """

        if not self.report_path.exists():
            return None
        with open(self.report_path, "r", encoding="utf-8") as handle:
            return StatusReport.from_dict(json.load(handle))
