from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List, Optional, Union

from efficio.core.statuses import SYNC_ERROR, SYNC_PENDING, SYNC_SYNCED, UNSYNCED
from efficio.models.time_block import TimeBlock, encode_task_ids
from efficio.services.connectivity import ConnectivityMonitor
from efficio.services.errors import NotFound, RemoteFailure, RemoteUnavailable, ValidationError
from efficio.services.gateway import RemoteGateway
from efficio.services.sync_engine import MutationResult
from efficio.storage.local_store import Collection, LocalStore
from efficio.utils.datetime_utils import parse_due_date, utc_now, week_around


logger = logging.getLogger("efficio.sync.time_blocks")


class TimeBlockService:
    """Local day schedule; new blocks are also created in the workspace."""

    def __init__(self, store: LocalStore, gateway: RemoteGateway, monitor: ConnectivityMonitor) -> None:
        self.store = store
        self.gateway = gateway
        self.monitor = monitor

    def save(
        self,
        title: str,
        day: Union[date, str],
        start_time: str,
        duration: str,
        *,
        block_type: str = "focus",
        task_ids: Optional[Iterable[int]] = None,
        block_id: Optional[int] = None,
    ) -> MutationResult:
        clean_title = (title or "").strip()
        if not clean_title or not (start_time or "").strip() or not (duration or "").strip():
            raise ValidationError("Time block needs a title, a start time and a duration")
        scheduled_on = parse_due_date(day)
        if scheduled_on is None:
            raise ValidationError(f"Invalid block date: {day!r}")

        fields = dict(
            title=clean_title,
            scheduled_on=scheduled_on,
            start_time=start_time.strip(),
            duration=duration.strip(),
            block_type=block_type or "focus",
            task_ids_json=encode_task_ids(task_ids),
            updated_at=utc_now(),
        )
        if block_id is not None:
            # The workspace has no update route for time blocks.
            return MutationResult(self.store.update(Collection.TIME_BLOCKS, block_id, **fields))

        block = self.store.insert(Collection.TIME_BLOCKS, sync_status=SYNC_PENDING, **fields)
        if not self.monitor.is_online:
            return MutationResult(block)
        return self._push(block)

    def delete(self, block_id: int) -> None:
        if not self.store.delete(Collection.TIME_BLOCKS, block_id):
            raise NotFound(Collection.TIME_BLOCKS, block_id)

    def toggle_completed(self, block_id: int) -> TimeBlock:
        block = self._require(block_id)
        return self.store.update(
            Collection.TIME_BLOCKS, block_id, completed=not block.completed, updated_at=utc_now()
        )

    def toggle_task(self, block_id: int, task_id: int) -> TimeBlock:
        block = self._require(block_id)
        ids = set(block.task_ids)
        ids.symmetric_difference_update({int(task_id)})
        return self.store.update(
            Collection.TIME_BLOCKS, block_id, task_ids_json=encode_task_ids(ids), updated_at=utc_now()
        )

    def list_for_date(self, day: date) -> List[TimeBlock]:
        blocks = self.store.list_where(Collection.TIME_BLOCKS, "scheduled_on", day)
        return sorted(blocks, key=lambda block: block.start_time)

    def week(self, center: date) -> List[tuple]:
        return [(day, self.list_for_date(day)) for day in week_around(center)]

    def retry_pending(self) -> int:
        if not self.monitor.is_online:
            return 0
        synced = 0
        for block in self.store.list_where(Collection.TIME_BLOCKS, "sync_status", UNSYNCED):
            if block.remote_id:
                continue
            result = self._push(block)
            if result.record.sync_status == SYNC_SYNCED:
                synced += 1
            elif not self.monitor.is_online:
                break
        return synced

    def _require(self, block_id: int) -> TimeBlock:
        block = self.store.get(Collection.TIME_BLOCKS, block_id)
        if block is None:
            raise NotFound(Collection.TIME_BLOCKS, block_id)
        return block

    def _push(self, block: TimeBlock) -> MutationResult:
        try:
            remote_id = self.gateway.create_time_block(
                title=block.title,
                day=block.scheduled_on,
                time=block.start_time,
                duration=block.duration,
                block_type=block.block_type,
                task_ids=[str(task_id) for task_id in block.task_ids],
            )
        except RemoteUnavailable:
            self.monitor.mark_offline()
            return MutationResult(block, notice="Offline: time block will sync when online")
        except RemoteFailure as exc:
            logger.warning("Failed to save time block %s: %s", block.local_id, exc)
            failed = self.store.update(Collection.TIME_BLOCKS, block.local_id, sync_status=SYNC_ERROR)
            return MutationResult(failed, notice=f"Failed to save time block to the workspace: {exc}")
        synced = self.store.update(
            Collection.TIME_BLOCKS, block.local_id, remote_id=remote_id, sync_status=SYNC_SYNCED
        )
        return MutationResult(synced)


__all__ = ["TimeBlockService"]
