from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from efficio.core.statuses import UNSYNCED
from efficio.storage.local_store import Collection, LocalStore


logger = logging.getLogger("efficio.sync.unsynced")


class UnsyncedCounter:
    """Number of active tasks still waiting for remote confirmation.

    Recounted on every store write to the task collection.
    """

    def __init__(self, store: LocalStore, collection: str = Collection.TASKS) -> None:
        self.store = store
        self.collection = collection
        self._count = 0
        self._lock = threading.Lock()
        self._listeners: List[Callable[[int], None]] = []
        self._attached = False

    @property
    def count(self) -> int:
        return self._count

    @property
    def has_unsynced(self) -> bool:
        return self._count > 0

    def attach(self) -> None:
        if not self._attached:
            self.store.subscribe(self._on_store_event)
            self._attached = True
        self.recount()

    def detach(self) -> None:
        if self._attached:
            self.store.unsubscribe(self._on_store_event)
            self._attached = False

    def subscribe(self, callback: Callable[[int], None]) -> None:
        self._listeners.append(callback)

    def recount(self) -> int:
        value = self.store.count_where(self.collection, "sync_status", UNSYNCED)
        with self._lock:
            changed = value != self._count
            self._count = value
        if changed:
            for listener in list(self._listeners):
                try:
                    listener(value)
                except Exception:
                    logger.exception("Unsynced listener %r failed", listener)
        return value

    def _on_store_event(self, collection: str, action: str, local_id: Optional[int]) -> None:
        if collection == self.collection:
            self.recount()


__all__ = ["UnsyncedCounter"]
