"""HTTP client for the workspace proxy used by the synchronisation engine."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

import requests

from efficio.core.settings import SYNC
from efficio.core.statuses import (
    COMPLETED,
    REMOTE_DEFAULT_CATEGORY,
    from_remote_status,
    normalize_priority,
    to_remote_status,
)
from efficio.models.habit import Habit
from efficio.services.errors import RemoteFailure, RemoteUnavailable
from efficio.utils.datetime_utils import format_due_date, parse_due_date


logger = logging.getLogger("efficio.sync.gateway")


def normalize_remote_task(item: Dict[str, Any]) -> Dict[str, Any]:
    """Map a proxy task payload onto local task fields."""

    title = str(item.get("title") or "").strip() or "Untitled Task"
    return {
        "remote_id": item.get("id") or None,
        "title": title,
        "category": item.get("category") or REMOTE_DEFAULT_CATEGORY,
        "priority": normalize_priority(item.get("priority")),
        "due_date": parse_due_date(item.get("dueDate")),
        "status": from_remote_status(item.get("status")),
    }


def task_payload(record: Any, *, status: Optional[str] = None) -> Dict[str, Any]:
    """Body for ``POST /tasks`` and ``POST /archive-tasks``."""

    return {
        "title": record.title,
        "category": record.category,
        "dueDate": format_due_date(record.due_date),
        "priority": record.priority,
        "status": to_remote_status(status or record.status),
    }


class RemoteGateway:
    """Thin wrapper over the proxy routes; one method per remote operation."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        health_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or SYNC.gateway_url).rstrip("/")
        self.health_url = health_url or SYNC.health_url
        self.timeout = float(timeout if timeout is not None else SYNC.request_timeout_sec)
        self._session = session

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({"Accept": "application/json"})
        return self._session

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    # ------------------------------------------------------------------
    # Transport
    def _request(self, method: str, path: str, *, json: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.request(method, url, json=json, timeout=self.timeout)
        except requests.Timeout as exc:
            raise RemoteFailure(f"{method} {path} timed out: {exc}") from exc
        except requests.ConnectionError as exc:
            raise RemoteUnavailable(f"{method} {path}: {exc}") from exc
        except requests.RequestException as exc:
            raise RemoteFailure(f"{method} {path} failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not response.ok:
            message = None
            if isinstance(payload, dict):
                message = payload.get("error") or payload.get("message")
            raise RemoteFailure(
                message or f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
            )
        if isinstance(payload, dict) and payload.get("error"):
            raise RemoteFailure(str(payload["error"]), status_code=response.status_code)
        return payload

    def _created_id(self, payload: Any, what: str) -> str:
        remote_id = payload.get("id") if isinstance(payload, dict) else None
        if not remote_id:
            raise RemoteFailure(f"{what} response carried no id")
        return str(remote_id)

    def ping(self) -> bool:
        try:
            response = self.session.get(self.health_url, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.debug("Health probe failed: %s", exc)
            return False
        return 200 <= response.status_code < 300

    # ------------------------------------------------------------------
    # Tasks
    def list_tasks(self) -> List[Dict[str, Any]]:
        payload = self._request("GET", "/tasks")
        return [normalize_remote_task(item) for item in payload or []]

    def create_task(self, record: Any) -> str:
        payload = self._request("POST", "/tasks", json=task_payload(record))
        return self._created_id(payload, "create task")

    def update_task_status(self, remote_id: str, status: str) -> None:
        self._request("PUT", f"/tasks/{remote_id}", json={"status": to_remote_status(status)})

    def soft_delete_task(self, remote_id: str) -> None:
        self._request("DELETE", f"/tasks/{remote_id}")

    # ------------------------------------------------------------------
    # Archive
    def list_archived_tasks(self) -> List[Dict[str, Any]]:
        payload = self._request("GET", "/archive-tasks")
        return [normalize_remote_task(item) for item in payload or []]

    def create_archived_task(self, record: Any) -> str:
        body = task_payload(record, status=COMPLETED)
        payload = self._request("POST", "/archive-tasks", json=body)
        return self._created_id(payload, "create archived task")

    # ------------------------------------------------------------------
    # Habits
    def list_habits(self) -> List[Habit]:
        payload = self._request("GET", "/habits")
        habits: List[Habit] = []
        for item in payload or []:
            if not item.get("id"):
                continue
            habits.append(
                Habit(
                    id=str(item["id"]),
                    habit=item.get("habit") or "",
                    description=item.get("description") or "",
                    do_now=bool(item.get("doNow")),
                )
            )
        return habits

    def set_habit_done(self, remote_id: str, done: bool) -> None:
        self._request("PATCH", f"/habits/{remote_id}", json={"doNow": bool(done)})

    # ------------------------------------------------------------------
    # Time blocks
    def create_time_block(
        self,
        *,
        title: str,
        day: date,
        time: str,
        duration: str,
        block_type: str,
        task_ids: Iterable[str],
    ) -> str:
        body = {
            "title": title,
            "date": day.isoformat(),
            "time": time,
            "duration": duration,
            "type": block_type,
            "tasks": list(task_ids),
        }
        payload = self._request("POST", "/timeblocks", json=body)
        return self._created_id(payload, "create time block")


__all__ = ["RemoteGateway", "normalize_remote_task", "task_payload"]
