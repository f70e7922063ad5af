"""Error taxonomy for the sync core.

Validation and lookup failures are raised to the caller before any state
changes. Remote errors never escape a mutation: the engine folds them into
the record's ``sync_status`` and reports a notice instead.
"""
from __future__ import annotations

from typing import Optional


class SyncError(Exception):
    """Base class for every error raised by Efficio services."""


class ValidationError(SyncError, ValueError):
    """Rejected user input (for example an empty task title)."""


class NotFound(SyncError, LookupError):
    def __init__(self, collection: str, local_id: object) -> None:
        super().__init__(f"{collection} record {local_id!r} not found")
        self.collection = collection
        self.local_id = local_id


class RemoteError(SyncError):
    """Anything that went wrong talking to the remote gateway."""


class RemoteUnavailable(RemoteError):
    """The network or the proxy host cannot be reached at all."""


class RemoteFailure(RemoteError):
    """The remote answered with an error payload, a bad status, or timed out."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "SyncError",
    "ValidationError",
    "NotFound",
    "RemoteError",
    "RemoteUnavailable",
    "RemoteFailure",
]
