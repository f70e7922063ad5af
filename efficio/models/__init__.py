"""ORM models and value objects exposed by Efficio."""
from .habit import Habit
from .task import ArchivedTask, Task, TaskFields
from .time_block import TimeBlock

__all__ = ["ArchivedTask", "Habit", "Task", "TaskFields", "TimeBlock"]
