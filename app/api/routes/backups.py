"""Backup lifecycle API routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool

from api.schemas.backups import BackupRunRequest, BackupRunResponse, StatusReportResponse
from api.security import verify_admin_key
from api.settings import Settings, get_settings
from backend.services.lifecycle.errors import ConfigurationError, ProductionError
from backend.services.lifecycle.factory import (
    build_backup_executor,
    build_monitor_executor,
    status_report_path,
)
from backend.services.lifecycle.reporter import StatusReporter


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/backups", tags=["Backups"])


@router.get("/status", response_model=StatusReportResponse)
async def get_status(
    _: str = Depends(verify_admin_key),
    settings: Settings = Depends(get_settings),
):
    """Return the status report written by the last monitoring run."""

    reporter = StatusReporter(status_report_path(settings))
    try:
        report = await run_in_threadpool(reporter.read)
    except (OSError, ValueError, KeyError) as exc:
        logger.exception("Failed to read status report %s", reporter.report_path)
        raise HTTPException(status_code=500, detail=f"Status report unreadable: {exc}")

    if report is None:
        raise HTTPException(status_code=404, detail="No status report yet. Run monitoring first.")
    return report.to_dict()


@router.post("/monitor", response_model=StatusReportResponse)
async def run_monitor(
    _: str = Depends(verify_admin_key),
    settings: Settings = Depends(get_settings),
):
    """Run monitoring now and return the fresh status report."""

    try:
        executor = build_monitor_executor(settings)
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    report = await executor.run()
    return report.to_dict()


@router.post("/run", response_model=BackupRunResponse)
async def run_backup(
    payload: BackupRunRequest,
    _: str = Depends(verify_admin_key),
    settings: Settings = Depends(get_settings),
):
    """Perform a backup run: produce, publish, then apply retention."""

    try:
        executor = build_backup_executor(settings)
        result = await executor.run(
            trigger=payload.trigger,
            backup_type=payload.backup_type,
            changes=payload.changes,
        )
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except ProductionError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    return result.to_dict()
