# efficio/models/time_block.py
import json
from typing import List, Optional
from datetime import date, datetime

from sqlmodel import Field, SQLModel

from efficio.core.statuses import SYNC_PENDING
from efficio.utils.datetime_utils import utc_now


class TimeBlock(SQLModel, table=True):
    __tablename__ = "time_blocks"
    __table_args__ = {"sqlite_autoincrement": True}

    local_id: Optional[int] = Field(default=None, primary_key=True)
    remote_id: Optional[str] = Field(default=None, index=True)
    title: str
    scheduled_on: date = Field(index=True)
    start_time: str                      # "HH:MM"
    duration: str                        # free text, e.g. "45m"
    block_type: str = "focus"
    completed: bool = False
    task_ids_json: str = "[]"
    sync_status: str = Field(default=SYNC_PENDING, index=True)
    updated_at: datetime = Field(default_factory=utc_now, index=True)

    @property
    def task_ids(self) -> List[int]:
        try:
            data = json.loads(self.task_ids_json or "[]")
        except json.JSONDecodeError:
            return []
        return [int(item) for item in data if isinstance(item, int)]


def encode_task_ids(task_ids) -> str:
    return json.dumps(sorted({int(item) for item in task_ids or []}))


__all__ = ["TimeBlock", "encode_task_ids"]
