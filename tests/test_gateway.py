from datetime import date
from types import SimpleNamespace

import pytest
import requests

from efficio.services.errors import RemoteFailure, RemoteUnavailable
from efficio.services.gateway import RemoteGateway, normalize_remote_task, task_payload


class FakeResponse:
    def __init__(self, status_code=200, payload=None, *, invalid_json=False):
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._invalid_json:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.requests = []

    def request(self, method, url, json=None, timeout=None):
        self.requests.append((method, url, json, timeout))
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)

    def get(self, url, timeout=None):
        return self.request("GET", url, timeout=timeout)

    def close(self):
        pass


def _gateway(session):
    return RemoteGateway("http://proxy.test/api/notion/", health_url="http://proxy.test/health", timeout=3, session=session)


def test_create_task_posts_remote_status_names():
    session = FakeSession([FakeResponse(200, {"id": "page-1"})])
    record = SimpleNamespace(
        title="Pay invoice", category="Finance", priority="high", due_date=date(2024, 1, 9), status="inprogress"
    )

    remote_id = _gateway(session).create_task(record)

    assert remote_id == "page-1"
    method, url, body, timeout = session.requests[0]
    assert (method, url, timeout) == ("POST", "http://proxy.test/api/notion/tasks", 3.0)
    assert body == {
        "title": "Pay invoice",
        "category": "Finance",
        "dueDate": "2024-01-09",
        "priority": "high",
        "status": "In progress",
    }


def test_list_tasks_normalises_payload():
    session = FakeSession(
        [FakeResponse(200, [{"id": "p", "title": "A", "status": "Completed", "priority": "Low", "dueDate": None}])]
    )

    tasks = _gateway(session).list_tasks()

    assert tasks == [
        {
            "remote_id": "p",
            "title": "A",
            "category": "Other",
            "priority": "low",
            "due_date": None,
            "status": "completed",
        }
    ]


def test_update_and_soft_delete_routes():
    session = FakeSession([FakeResponse(200, {"success": True}), FakeResponse(200, {"success": True})])
    gateway = _gateway(session)

    gateway.update_task_status("abc", "completed")
    gateway.soft_delete_task("abc")

    assert session.requests[0][:3] == ("PUT", "http://proxy.test/api/notion/tasks/abc", {"status": "Completed"})
    assert session.requests[1][:2] == ("DELETE", "http://proxy.test/api/notion/tasks/abc")


def test_http_error_maps_to_remote_failure_with_status():
    session = FakeSession([FakeResponse(404, {"error": "Could not find page"})])

    with pytest.raises(RemoteFailure) as excinfo:
        _gateway(session).soft_delete_task("missing")

    assert excinfo.value.status_code == 404
    assert "Could not find page" in str(excinfo.value)


def test_error_payload_with_ok_status_is_a_failure():
    session = FakeSession([FakeResponse(200, {"error": "Notion said no"})])
    with pytest.raises(RemoteFailure):
        _gateway(session).list_tasks()


def test_non_json_error_body():
    session = FakeSession([FakeResponse(502, invalid_json=True)])
    with pytest.raises(RemoteFailure, match="status: 502"):
        _gateway(session).list_archived_tasks()


def test_connection_error_means_unavailable():
    session = FakeSession(error=requests.ConnectionError("refused"))
    with pytest.raises(RemoteUnavailable):
        _gateway(session).list_tasks()


def test_timeout_is_a_failure_not_offline():
    session = FakeSession(error=requests.Timeout("slow"))
    with pytest.raises(RemoteFailure):
        _gateway(session).list_tasks()


def test_create_without_id_is_a_failure():
    session = FakeSession([FakeResponse(200, {})])
    record = SimpleNamespace(title="x", category="Work", priority="medium", due_date=None, status="pending")
    with pytest.raises(RemoteFailure):
        _gateway(session).create_task(record)


def test_archived_task_is_always_completed():
    session = FakeSession([FakeResponse(200, {"id": "arch-1"})])
    record = SimpleNamespace(title="x", category="Work", priority="medium", due_date=None, status="pending")

    assert _gateway(session).create_archived_task(record) == "arch-1"
    assert session.requests[0][2]["status"] == "Completed"
    assert session.requests[0][1].endswith("/archive-tasks")


def test_habits_and_time_blocks():
    session = FakeSession(
        [
            FakeResponse(200, [{"id": "h1", "habit": "Read", "description": "", "doNow": False}, {"habit": "no id"}]),
            FakeResponse(200, {"success": True}),
            FakeResponse(200, {"id": "tb-1"}),
        ]
    )
    gateway = _gateway(session)

    habits = gateway.list_habits()
    gateway.set_habit_done("h1", True)
    block_id = gateway.create_time_block(
        title="Deep work", day=date(2024, 4, 2), time="09:00", duration="90m", block_type="focus", task_ids=["3"]
    )

    assert [h.id for h in habits] == ["h1"]
    assert session.requests[1][:3] == ("PATCH", "http://proxy.test/api/notion/habits/h1", {"doNow": True})
    assert block_id == "tb-1"
    assert session.requests[2][2] == {
        "title": "Deep work",
        "date": "2024-04-02",
        "time": "09:00",
        "duration": "90m",
        "type": "focus",
        "tasks": ["3"],
    }


def test_ping_uses_health_url():
    ok = FakeSession([FakeResponse(200, {"status": "ok"})])
    assert _gateway(ok).ping() is True
    assert ok.requests[0][1] == "http://proxy.test/health"

    down = FakeSession(error=requests.ConnectionError("refused"))
    assert _gateway(down).ping() is False


def test_payload_helpers():
    record = SimpleNamespace(title="t", category="Work", priority="low", due_date=None, status="completed")
    assert task_payload(record)["dueDate"] == ""
    assert normalize_remote_task({"id": "", "title": "  "})["remote_id"] is None
