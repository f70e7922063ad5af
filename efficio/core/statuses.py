"""Status, priority and sync-state vocabulary shared by every layer."""
from __future__ import annotations

from typing import Dict, Optional

# Task workflow statuses as stored locally.
PENDING = "pending"
IN_PROGRESS = "inprogress"
COMPLETED = "completed"

TASK_STATUSES = (PENDING, IN_PROGRESS, COMPLETED)

# Exact strings the workspace service expects on write.
REMOTE_STATUS_NAMES: Dict[str, str] = {
    PENDING: "Pending",
    IN_PROGRESS: "In progress",
    COMPLETED: "Completed",
}

# Lower-cased, space-stripped remote spellings accepted on read.
_REMOTE_ALIASES: Dict[str, str] = {
    "pending": PENDING,
    "inprogress": IN_PROGRESS,
    "completed": COMPLETED,
    "complete": COMPLETED,
    "done": COMPLETED,
}

# Reconciliation states of a local record.
SYNC_PENDING = "pending"
SYNC_SYNCED = "synced"
SYNC_ERROR = "error"

SYNC_STATUSES = (SYNC_PENDING, SYNC_SYNCED, SYNC_ERROR)
UNSYNCED = (SYNC_PENDING, SYNC_ERROR)

PRIORITIES = ("low", "medium", "high")
DEFAULT_PRIORITY = "medium"

DEFAULT_CATEGORY = "Work"
REMOTE_DEFAULT_CATEGORY = "Other"


def to_remote_status(status: str) -> str:
    """Map a local status to the remote display name."""
    try:
        return REMOTE_STATUS_NAMES[status]
    except KeyError:
        raise ValueError(f"Unknown task status: {status!r}") from None


def from_remote_status(value: Optional[str]) -> str:
    """Parse a remote status name; unknown or missing values become ``pending``."""
    if not value:
        return PENDING
    key = "".join(str(value).split()).lower()
    return _REMOTE_ALIASES.get(key, PENDING)


def is_task_status(value: object) -> bool:
    return value in TASK_STATUSES


def normalize_priority(value: Optional[str]) -> str:
    """Clamp external priority labels to the supported set."""
    if value is None:
        return DEFAULT_PRIORITY
    lowered = str(value).strip().lower()
    return lowered if lowered in PRIORITIES else DEFAULT_PRIORITY


__all__ = [
    "PENDING",
    "IN_PROGRESS",
    "COMPLETED",
    "TASK_STATUSES",
    "REMOTE_STATUS_NAMES",
    "SYNC_PENDING",
    "SYNC_SYNCED",
    "SYNC_ERROR",
    "SYNC_STATUSES",
    "UNSYNCED",
    "PRIORITIES",
    "DEFAULT_PRIORITY",
    "DEFAULT_CATEGORY",
    "REMOTE_DEFAULT_CATEGORY",
    "to_remote_status",
    "from_remote_status",
    "is_task_status",
    "normalize_priority",
]
