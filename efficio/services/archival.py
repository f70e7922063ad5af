"""Start-up sweep that moves stale completed tasks into the archive."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, List, Optional

from efficio.core.settings import SYNC
from efficio.core.statuses import COMPLETED
from efficio.services.errors import NotFound
from efficio.services.sync_engine import MutationResult, SyncEngine
from efficio.storage.local_store import Collection
from efficio.utils.datetime_utils import days_since


logger = logging.getLogger("efficio.sync.archival")


@dataclass
class ArchivalReport:
    archived: List[int] = field(default_factory=list)
    notices: List[str] = field(default_factory=list)


class ArchivalPolicy:
    def __init__(self, engine: SyncEngine, *, after_days: int = SYNC.auto_archive_after_days) -> None:
        self.engine = engine
        self.after_days = after_days

    def is_eligible(self, task: Any, today: Optional[date] = None) -> bool:
        """Completed and due more than ``after_days`` calendar days ago."""
        if task.status != COMPLETED or task.due_date is None:
            return False
        return days_since(task.due_date, today) > self.after_days

    def run(self, today: Optional[date] = None) -> ArchivalReport:
        report = ArchivalReport()
        candidates = self.engine.store.list_where(Collection.TASKS, "status", COMPLETED)
        for task in candidates:
            if not self.is_eligible(task, today):
                continue
            try:
                result: MutationResult = self.engine.archive(task.local_id)
            except NotFound:
                continue
            report.archived.append(task.local_id)
            if result.notice:
                report.notices.append(result.notice)
        if report.archived:
            logger.info("Auto-archived %d completed task(s)", len(report.archived))
        return report


__all__ = ["ArchivalPolicy", "ArchivalReport"]
