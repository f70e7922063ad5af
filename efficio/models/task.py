# efficio/models/task.py
from typing import Optional
from datetime import date, datetime

from sqlmodel import Field, SQLModel

from efficio.core.statuses import DEFAULT_CATEGORY, DEFAULT_PRIORITY, PENDING, SYNC_PENDING
from efficio.utils.datetime_utils import utc_now


class TaskFields(SQLModel):
    """Columns shared by the active and archived task collections."""

    remote_id: Optional[str] = Field(default=None, index=True)
    title: str
    category: str = Field(default=DEFAULT_CATEGORY, index=True)
    priority: str = Field(default=DEFAULT_PRIORITY, index=True)
    due_date: Optional[date] = Field(default=None, index=True)
    status: str = Field(default=PENDING, index=True)          # pending / inprogress / completed
    sync_status: str = Field(default=SYNC_PENDING, index=True)  # pending / synced / error
    updated_at: datetime = Field(default_factory=utc_now, index=True)
    sync_attempts: int = 0
    next_retry_at: Optional[datetime] = None
    last_error: Optional[str] = None


class Task(TaskFields, table=True):
    __tablename__ = "tasks"
    __table_args__ = {"sqlite_autoincrement": True}

    local_id: Optional[int] = Field(default=None, primary_key=True)


class ArchivedTask(TaskFields, table=True):
    __tablename__ = "archived_tasks"
    __table_args__ = {"sqlite_autoincrement": True}

    local_id: Optional[int] = Field(default=None, primary_key=True)
    # Remote id of the active-collection page still to be soft-deleted.
    source_remote_id: Optional[str] = None
    archived_at: datetime = Field(default_factory=utc_now)


__all__ = ["TaskFields", "Task", "ArchivedTask"]
