"""Optimistic local writes reconciled with the workspace proxy.

Every mutation lands in the local store first. Remote calls only move a
record between ``pending``, ``synced`` and ``error``; they never undo the
local write.
"""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from efficio.core.settings import SYNC, SyncSettings
from efficio.core.statuses import (
    COMPLETED,
    DEFAULT_CATEGORY,
    DEFAULT_PRIORITY,
    PENDING,
    PRIORITIES,
    SYNC_ERROR,
    SYNC_PENDING,
    SYNC_SYNCED,
    TASK_STATUSES,
    UNSYNCED,
)
from efficio.models.task import Task
from efficio.services.connectivity import ConnectivityMonitor
from efficio.services.errors import NotFound, RemoteFailure, RemoteUnavailable, ValidationError
from efficio.services.gateway import RemoteGateway, normalize_remote_task
from efficio.storage.local_store import Collection, LocalStore
from efficio.utils.datetime_utils import ensure_utc, parse_due_date, utc_now
from efficio.utils.locks import KeyedLocks


SYNCABLE = (Collection.TASKS, Collection.ARCHIVED)


def _ensure_logger(log_path: Path = SYNC.log_path) -> logging.Logger:
    logger = logging.getLogger("efficio.sync")
    if not logger.handlers:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger


def _next_try(attempts: int, cap_sec: int) -> datetime:
    delay = min(cap_sec, 2 ** max(attempts, 0))
    return utc_now() + timedelta(seconds=delay)


def _clean_bookkeeping() -> dict:
    return {"sync_attempts": 0, "next_retry_at": None, "last_error": None}


@dataclass
class MutationResult:
    """Outcome of a user-facing operation.

    ``notice`` carries a non-fatal message when the remote half failed; the
    local write in ``record`` stands regardless.
    """

    record: Any
    notice: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.notice is None


@dataclass
class SweepReport:
    attempted: int = 0
    synced: int = 0
    failed: int = 0
    skipped: int = 0
    interrupted: bool = False

    def changed(self) -> bool:
        return bool(self.synced or self.failed)


@dataclass
class RefreshResult:
    replaced: bool
    count: int = 0
    notice: Optional[str] = None
    kept: int = 0


class SyncEngine:
    """Optimistic local writes reconciled against the remote gateway."""

    def __init__(
        self,
        store: LocalStore,
        gateway: RemoteGateway,
        monitor: ConnectivityMonitor,
        *,
        settings: SyncSettings = SYNC,
        notify: Optional[Callable[[str], None]] = None,
        locks: Optional[KeyedLocks] = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.monitor = monitor
        self.settings = settings
        self.notify = notify
        self.locks = locks or KeyedLocks()
        self.logger = _ensure_logger(settings.log_path)

    # ------------------------------------------------------------------
    # Mutations
    def create_task(
        self,
        title: str,
        *,
        category: Optional[str] = DEFAULT_CATEGORY,
        priority: Optional[str] = DEFAULT_PRIORITY,
        due_date: Union[date, str, None] = None,
        status: str = PENDING,
    ) -> MutationResult:
        clean_title = (title or "").strip()
        if not clean_title:
            raise ValidationError("Task title must not be empty")
        if status not in TASK_STATUSES:
            raise ValidationError(f"Unknown task status: {status!r}")
        priority = (priority or DEFAULT_PRIORITY).strip().lower()
        if priority not in PRIORITIES:
            raise ValidationError(f"Unknown priority: {priority!r}")
        if isinstance(due_date, str) and due_date.strip() and parse_due_date(due_date) is None:
            raise ValidationError(f"Invalid due date: {due_date!r}")

        record = self.store.insert(
            Collection.TASKS,
            title=clean_title,
            category=(category or "").strip() or DEFAULT_CATEGORY,
            priority=priority,
            due_date=parse_due_date(due_date),
            status=status,
            sync_status=SYNC_PENDING,
            updated_at=utc_now(),
        )
        self.logger.info("Task %s created locally", record.local_id)
        if not self.monitor.is_online:
            return MutationResult(record)

        with self.locks.hold((Collection.TASKS, record.local_id)):
            result = self._push_task(record.local_id)
        return self._report(result)

    def update_status(self, local_id: int, new_status: str) -> MutationResult:
        if new_status not in TASK_STATUSES:
            raise ValidationError(f"Unknown task status: {new_status!r}")

        with self.locks.hold((Collection.TASKS, local_id)):
            record = self.store.update(
                Collection.TASKS,
                local_id,
                status=new_status,
                sync_status=SYNC_PENDING,
                updated_at=utc_now(),
                **_clean_bookkeeping(),
            )
            self.logger.info("Task %s status -> %s (local)", local_id, new_status)
            if not record.remote_id or not self.monitor.is_online:
                return MutationResult(record)
            result = self._push_task(local_id)
        return self._report(result)

    def replace_from_remote(self, collection: str, remote_records: Iterable[Mapping[str, Any]]) -> int:
        """Drop the whole collection and store ``remote_records`` as synced.

        Last fetch wins; nothing is merged record by record.
        """

        if collection not in SYNCABLE:
            raise ValueError(f"Collection {collection!r} is not mirrored from the remote")
        rows = self._synced_rows(collection, remote_records)
        count = self.store.replace_all(collection, rows)
        self.logger.info("Replaced %s with %d remote records", collection, count)
        return count

    def archive(self, task: Union[Task, int]) -> MutationResult:
        local_id = task if isinstance(task, int) else task.local_id
        if local_id is None:
            raise NotFound(Collection.TASKS, local_id)

        now = utc_now()
        with self.locks.hold((Collection.TASKS, local_id)):
            current = self.store.get(Collection.TASKS, local_id)
            if current is None:
                raise NotFound(Collection.TASKS, local_id)
            archived = self.store.transfer(
                Collection.TASKS,
                local_id,
                Collection.ARCHIVED,
                remote_id=None,
                source_remote_id=current.remote_id,
                status=COMPLETED,
                sync_status=SYNC_PENDING,
                updated_at=now,
                archived_at=now,
                **_clean_bookkeeping(),
            )
        self.logger.info("Task %s archived locally as %s", local_id, archived.local_id)
        if not self.monitor.is_online:
            return MutationResult(archived)

        with self.locks.hold((Collection.ARCHIVED, archived.local_id)):
            result = self._push_archived(archived.local_id)
        return self._report(result)

    # ------------------------------------------------------------------
    # Reconciliation
    def retry_sweep(self, collections: Iterable[str] = SYNCABLE) -> SweepReport:
        """Push every unsynced record that is due; one failure never stops the pass."""

        report = SweepReport()
        if not self.monitor.is_online:
            report.interrupted = True
            return report

        now = utc_now()
        for collection in collections:
            push = self._push_task if collection == Collection.TASKS else self._push_archived
            for candidate in self.store.list_where(collection, "sync_status", UNSYNCED):
                if not self._due_for_retry(candidate, now):
                    report.skipped += 1
                    continue
                if not self.monitor.is_online:
                    report.interrupted = True
                    break
                with self.locks.hold((collection, candidate.local_id)):
                    current = self.store.get(collection, candidate.local_id)
                    if current is None or not self._due_for_retry(current, now):
                        report.skipped += 1
                        continue
                    report.attempted += 1
                    result = push(candidate.local_id)
                if result.record is not None and result.record.sync_status == SYNC_SYNCED:
                    report.synced += 1
                elif not self.monitor.is_online:
                    report.interrupted = True
                    break
                else:
                    report.failed += 1
            if report.interrupted:
                break

        if report.attempted or report.skipped:
            self.logger.info(
                "Retry sweep: attempted=%d synced=%d failed=%d skipped=%d%s",
                report.attempted,
                report.synced,
                report.failed,
                report.skipped,
                " (interrupted)" if report.interrupted else "",
            )
        return report

    def refresh(self, collection: str) -> RefreshResult:
        """Fetch ``collection`` from the remote and replace the local copy.

        Local changes are pushed first. Records still unconfirmed after that
        stay in place; every synced row is replaced by the fetched set.
        """

        if collection not in SYNCABLE:
            raise ValueError(f"Collection {collection!r} is not mirrored from the remote")
        if not self.monitor.is_online:
            return RefreshResult(False, notice="Offline: showing cached data")

        self.retry_sweep((collection,))
        fetch = self.gateway.list_tasks if collection == Collection.TASKS else self.gateway.list_archived_tasks
        try:
            items = fetch()
        except RemoteUnavailable as exc:
            self._went_offline(exc)
            return RefreshResult(False, notice="Offline: showing cached data")
        except RemoteFailure as exc:
            self.logger.error("Fetching %s failed: %s", collection, exc)
            return RefreshResult(False, notice=f"Failed to fetch {collection}: {exc}")

        rows = self._synced_rows(collection, items)
        count = self.store.replace_all(collection, rows, keep_unsynced=True)
        kept = self.store.count_where(collection, "sync_status", UNSYNCED)
        self.logger.info("Refreshed %s: %d records, %d unsynced kept", collection, count, kept)
        return RefreshResult(True, count, kept=kept)

    def refresh_tasks(self) -> RefreshResult:
        return self.refresh(Collection.TASKS)

    def refresh_archived(self) -> RefreshResult:
        return self.refresh(Collection.ARCHIVED)

    def unsynced_count(self, collection: str = Collection.TASKS) -> int:
        return self.store.count_where(collection, "sync_status", UNSYNCED)

    # ------------------------------------------------------------------
    # Push helpers; callers hold the record lock
    def _push_task(self, local_id: int) -> MutationResult:
        record = self.store.get(Collection.TASKS, local_id)
        if record is None:
            return MutationResult(None)
        if record.sync_status == SYNC_SYNCED:
            return MutationResult(record)
        if record.sync_status == SYNC_ERROR:
            record = self.store.update(Collection.TASKS, local_id, sync_status=SYNC_PENDING)

        fields = {}
        try:
            if record.remote_id:
                self.gateway.update_task_status(record.remote_id, record.status)
            else:
                fields["remote_id"] = self.gateway.create_task(record)
        except RemoteUnavailable as exc:
            self._went_offline(exc)
            return MutationResult(record, notice="Offline: changes will sync when online")
        except RemoteFailure as exc:
            failed = self._mark_failed(Collection.TASKS, record, exc)
            return MutationResult(failed, notice=f"Failed to sync {record.title!r} with the workspace: {exc}")

        synced = self._mark_synced(Collection.TASKS, local_id, **fields)
        self.logger.info("Task %s synced (remote %s)", local_id, synced.remote_id)
        return MutationResult(synced)

    def _push_archived(self, local_id: int) -> MutationResult:
        record = self.store.get(Collection.ARCHIVED, local_id)
        if record is None:
            return MutationResult(None)
        if record.sync_status == SYNC_SYNCED and not record.source_remote_id:
            return MutationResult(record)
        if record.sync_status == SYNC_ERROR:
            record = self.store.update(Collection.ARCHIVED, local_id, sync_status=SYNC_PENDING)

        try:
            if not record.remote_id:
                remote_id = self.gateway.create_archived_task(record)
                record = self.store.update(Collection.ARCHIVED, local_id, remote_id=remote_id)
            if record.source_remote_id:
                self._soft_delete(record.source_remote_id)
                record = self.store.update(Collection.ARCHIVED, local_id, source_remote_id=None)
        except RemoteUnavailable as exc:
            self._went_offline(exc)
            return MutationResult(record, notice="Offline: archive will sync when online")
        except RemoteFailure as exc:
            failed = self._mark_failed(Collection.ARCHIVED, record, exc)
            return MutationResult(failed, notice=f"Failed to sync archived task with the workspace: {exc}")

        synced = self._mark_synced(Collection.ARCHIVED, local_id)
        self.logger.info("Archived task %s synced (remote %s)", local_id, synced.remote_id)
        return MutationResult(synced)

    def _soft_delete(self, remote_id: str) -> None:
        try:
            self.gateway.soft_delete_task(remote_id)
        except RemoteFailure as exc:
            if exc.status_code == 404:
                self.logger.info("Remote task %s already gone", remote_id)
                return
            raise

    def _mark_synced(self, collection: str, local_id: int, **fields: Any):
        return self.store.update(
            collection,
            local_id,
            sync_status=SYNC_SYNCED,
            **_clean_bookkeeping(),
            **fields,
        )

    def _mark_failed(self, collection: str, record: Any, exc: Exception):
        attempts = (record.sync_attempts or 0) + 1
        self.logger.warning("Sync of %s %s failed (attempt %d): %s", collection, record.local_id, attempts, exc)
        return self.store.update(
            collection,
            record.local_id,
            sync_status=SYNC_ERROR,
            sync_attempts=attempts,
            next_retry_at=_next_try(attempts, self.settings.retry_backoff_cap_sec),
            last_error=str(exc)[:1000],
        )

    def _due_for_retry(self, record: Any, now: datetime) -> bool:
        if record.sync_status == SYNC_PENDING:
            return True
        if record.sync_status != SYNC_ERROR or not self.settings.retry_errors:
            return False
        if (record.sync_attempts or 0) >= self.settings.retry_max_attempts:
            return False
        next_try = ensure_utc(record.next_retry_at)
        return next_try is None or next_try <= now

    def _went_offline(self, exc: Exception) -> None:
        self.logger.warning("Remote unreachable, switching to offline: %s", exc)
        self.monitor.mark_offline()

    def _report(self, result: MutationResult) -> MutationResult:
        if result.notice:
            self.logger.warning(result.notice)
            if self.notify is not None:
                try:
                    self.notify(result.notice)
                except Exception:
                    self.logger.exception("Notice callback failed")
        return result

    def _synced_rows(self, collection: str, remote_records: Iterable[Mapping[str, Any]]) -> list:
        now = utc_now()
        rows = []
        for item in remote_records:
            row = dict(item) if "remote_id" in item else normalize_remote_task(item)
            row.update(sync_status=SYNC_SYNCED, updated_at=now, **_clean_bookkeeping())
            if collection == Collection.ARCHIVED:
                row.setdefault("archived_at", now)
            rows.append(row)
        return rows


__all__ = ["MutationResult", "RefreshResult", "SweepReport", "SyncEngine", "SYNCABLE"]
