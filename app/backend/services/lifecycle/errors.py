"""Error taxonomy for backup and monitoring runs.

Fatal errors (`ConfigurationError`, `ProductionError`) abort the current run.
The remaining errors are collected and surfaced in logs and reports.
"""

from __future__ import annotations

from typing import Any, Optional


class LifecycleError(Exception):
    """Base class for backup lifecycle errors."""


class ConfigurationError(LifecycleError):
    """Required configuration is missing or invalid."""


class ProductionError(LifecycleError):
    """An artifact could not be produced for a category."""

    def __init__(self, category: Any, cause: Any):
        self.category = category
        self.cause = cause
        label = getattr(category, "value", category)
        super().__init__(f"Failed to produce {label} backup: {cause}")


class PublishError(LifecycleError):
    """An artifact could not be uploaded to remote storage."""

    def __init__(self, artifact: Any, cause: Any, *, key: Optional[str] = None):
        self.artifact = artifact
        self.cause = cause
        self.key = key
        name = getattr(artifact, "identifier", artifact)
        super().__init__(f"Failed to publish {name}: {cause}")


class RetentionError(LifecycleError):
    """A single artifact could not be deleted during retention."""

    def __init__(self, artifact: Any, cause: Any):
        self.artifact = artifact
        self.cause = cause
        name = getattr(artifact, "identifier", artifact)
        super().__init__(f"Failed to delete {name}: {cause}")


class ScanError(LifecycleError):
    """A storage location could not be listed."""

    def __init__(self, location: Any, cause: Any):
        self.location = location
        self.cause = cause
        label = getattr(location, "value", location)
        super().__init__(f"Failed to scan {label} backups: {cause}")
