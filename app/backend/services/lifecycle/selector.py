"""Backup type selection.

Decides the scope of a backup run from the trigger that started it and an
optional description of what changed. Pure functions, no I/O.
"""

from __future__ import annotations

from typing import Iterable, Optional, Tuple, Union

from backend.services.lifecycle.models import ALL_CATEGORIES, BackupCategory, BackupType, Trigger


# Substrings of changed paths that force a full backup on push.
SCHEMA_CHANGE_MARKERS = ("prisma", "database", "migration", "schema")
SECURITY_CHANGE_MARKERS = ("auth", "security")


def _normalize_trigger(trigger: Union[Trigger, str, None]) -> Optional[Trigger]:
    if isinstance(trigger, Trigger):
        return trigger
    try:
        return Trigger(str(trigger or "").strip().lower())
    except ValueError:
        return None


def _mentions_critical_paths(changes: Iterable[str]) -> bool:
    for change in changes:
        lowered = str(change).lower()
        if any(marker in lowered for marker in SCHEMA_CHANGE_MARKERS):
            return True
        if any(marker in lowered for marker in SECURITY_CHANGE_MARKERS):
            return True
    return False


def resolve_backup_type(
    trigger: Union[Trigger, str, None],
    changes: Union[str, Iterable[str], None] = None,
) -> BackupType:
    """Resolve the backup type for a trigger.

    Rules are evaluated in order and the first match wins:
    release -> full, schedule -> database, push touching schema or
    auth/security paths -> full, any other push -> incremental, anything
    else (manual, unknown) -> full.

    Args:
        trigger: Trigger name or enum member.
        changes: Changed paths or free-form change descriptors; a single
            string counts as one descriptor.

    Returns:
        BackupType: Resolved type.
    """

    resolved = _normalize_trigger(trigger)
    if isinstance(changes, str):
        changes = (changes,)

    if resolved == Trigger.RELEASE:
        return BackupType.FULL
    if resolved == Trigger.SCHEDULE:
        return BackupType.DATABASE
    if resolved == Trigger.PUSH:
        if _mentions_critical_paths(changes or ()):
            return BackupType.FULL
        return BackupType.INCREMENTAL
    return BackupType.FULL


def categories_for_type(backup_type: Union[BackupType, str]) -> Tuple[BackupCategory, ...]:
    """Map a backup type to the categories to produce.

    `incremental` has no narrower selection yet and produces every category,
    exactly like `full`.

    Raises:
        ValueError: When the type is unknown.
    """

    resolved = BackupType(backup_type)
    if resolved in (BackupType.FULL, BackupType.INCREMENTAL):
        return ALL_CATEGORIES
    return (BackupCategory(resolved.value),)
