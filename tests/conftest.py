import os
import tempfile

# Keep the import-time data directory (logs, default db) out of the user's home.
os.environ.setdefault("EFFICIO_DATA_DIR", tempfile.mkdtemp(prefix="efficio-tests-"))

import pytest

from efficio.models.habit import Habit
from efficio.services.connectivity import ConnectivityMonitor
from efficio.services.errors import RemoteFailure, RemoteUnavailable
from efficio.storage.db import create_store_engine, init_db
from efficio.storage.local_store import LocalStore


class FakeGateway:
    """In-memory stand-in for :class:`RemoteGateway`.

    ``fail_with`` maps an operation name to an exception instance (raised on
    every call) or a list of exceptions consumed one call at a time.
    """

    def __init__(self):
        self.tasks = {}
        self.archived = {}
        self.habits = []
        self.habit_done = {}
        self.time_blocks = []
        self.calls = []
        self.fail_with = {}
        self.reachable = True
        self._seq = 0

    def _next_id(self, prefix):
        self._seq += 1
        return f"{prefix}-{self._seq}"

    def _maybe_fail(self, name):
        self.calls.append(name)
        failure = self.fail_with.get(name)
        if isinstance(failure, list):
            if failure:
                raise failure.pop(0)
            return
        if failure is not None:
            raise failure

    def ping(self):
        return self.reachable

    def close(self):
        pass

    def list_tasks(self):
        self._maybe_fail("list_tasks")
        return [dict(item, remote_id=rid) for rid, item in self.tasks.items()]

    def create_task(self, record):
        self._maybe_fail("create_task")
        remote_id = self._next_id("page")
        self.tasks[remote_id] = {
            "title": record.title,
            "category": record.category,
            "priority": record.priority,
            "due_date": record.due_date,
            "status": record.status,
        }
        return remote_id

    def update_task_status(self, remote_id, status):
        self._maybe_fail("update_task_status")
        if remote_id not in self.tasks:
            raise RemoteFailure("Could not find page", status_code=404)
        self.tasks[remote_id]["status"] = status

    def soft_delete_task(self, remote_id):
        self._maybe_fail("soft_delete_task")
        if remote_id not in self.tasks:
            raise RemoteFailure("Could not find page", status_code=404)
        del self.tasks[remote_id]

    def list_archived_tasks(self):
        self._maybe_fail("list_archived_tasks")
        return [dict(item, remote_id=rid) for rid, item in self.archived.items()]

    def create_archived_task(self, record):
        self._maybe_fail("create_archived_task")
        remote_id = self._next_id("archive")
        self.archived[remote_id] = {
            "title": record.title,
            "category": record.category,
            "priority": record.priority,
            "due_date": record.due_date,
            "status": "completed",
        }
        return remote_id

    def list_habits(self):
        self._maybe_fail("list_habits")
        return list(self.habits)

    def set_habit_done(self, remote_id, done):
        self._maybe_fail("set_habit_done")
        self.habit_done[remote_id] = done

    def create_time_block(self, **body):
        self._maybe_fail("create_time_block")
        self.time_blocks.append(body)
        return self._next_id("block")


@pytest.fixture()
def engine(tmp_path):
    engine = create_store_engine(tmp_path / "efficio.db")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def store(engine):
    return LocalStore(engine)


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def monitor():
    return ConnectivityMonitor(online=True)


@pytest.fixture()
def offline_monitor():
    return ConnectivityMonitor(online=False)


@pytest.fixture()
def sample_habits():
    return [
        Habit(id="h-1", habit="Read", description="20 pages"),
        Habit(id="h-2", habit="Stretch"),
    ]


@pytest.fixture()
def unreachable():
    return RemoteUnavailable("connection refused")
