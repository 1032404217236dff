"""Schemas for backup lifecycle endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class BackupRunRequest(BaseModel):
    """Request to perform a backup run."""

    backup_type: Optional[str] = Field(
        None,
        description="Backup type: full|database|code|config|incremental. Resolved from the trigger when omitted.",
    )
    trigger: str = Field("manual", description="Trigger: push|release|schedule|manual")
    changes: List[str] = Field(default_factory=list, description="Changed paths used to resolve the type on push")


class BackupRunResponse(BaseModel):
    """Outcome of a backup run."""

    run_id: str
    status: str
    trigger: str
    resolved_type: str
    categories: List[str] = Field(default_factory=list)
    artifacts: List[Dict[str, Any]] = Field(default_factory=list)
    uploads: List[Dict[str, Any]] = Field(default_factory=list)
    deleted: List[Dict[str, Any]] = Field(default_factory=list)
    retention_errors: List[str] = Field(default_factory=list)
    total_size_bytes: int = 0


class AlertResponse(BaseModel):
    severity: str
    kind: str
    message: str


class StatusReportResponse(BaseModel):
    """Persisted status report of the last monitoring run."""

    timestamp: str
    status: str
    local: Dict[str, Any] = Field(default_factory=dict)
    remote: Dict[str, Any] = Field(default_factory=dict)
    alerts: List[AlertResponse] = Field(default_factory=list)
    summary: Dict[str, Any] = Field(default_factory=dict)
