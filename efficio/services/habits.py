"""Daily habit check-offs mirrored to the workspace habit tracker.

Check marks live only for the current session: they are reset every time
the habit list is fetched, and a habit becomes locked once its "done" flag
has been accepted remotely.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from efficio.models.habit import Habit
from efficio.services.connectivity import ConnectivityMonitor
from efficio.services.errors import NotFound, RemoteFailure, RemoteUnavailable
from efficio.services.gateway import RemoteGateway
from efficio.utils.datetime_utils import seconds_until_midnight


logger = logging.getLogger("efficio.sync.habits")


@dataclass
class HabitSubmitResult:
    submitted: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    notice: Optional[str] = None


class HabitTracker:
    def __init__(self, gateway: RemoteGateway, monitor: ConnectivityMonitor) -> None:
        self.gateway = gateway
        self.monitor = monitor
        self.habits: List[Habit] = []
        self.checked: Dict[str, bool] = {}
        self.locked: Dict[str, bool] = {}
        self._lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None

    def refresh(self) -> Optional[str]:
        """Refetch habits and reset all flags; returns a notice on failure."""
        if not self.monitor.is_online:
            return "Offline: habits not refreshed"
        try:
            habits = self.gateway.list_habits()
        except RemoteUnavailable as exc:
            self.monitor.mark_offline()
            logger.warning("Habit fetch skipped, remote unreachable: %s", exc)
            return "Offline: habits not refreshed"
        except RemoteFailure as exc:
            logger.error("Failed to fetch habits: %s", exc)
            return f"Failed to fetch habits: {exc}"
        with self._lock:
            self.habits = habits
            self.checked = {habit.id: False for habit in habits}
            self.locked = {habit.id: False for habit in habits}
        return None

    def toggle(self, habit_id: str) -> bool:
        with self._lock:
            if habit_id not in self.checked:
                raise NotFound("habits", habit_id)
            if self.locked.get(habit_id):
                return self.checked[habit_id]
            self.checked[habit_id] = not self.checked[habit_id]
            return self.checked[habit_id]

    def outstanding(self) -> List[str]:
        with self._lock:
            return [hid for hid, done in self.checked.items() if done and not self.locked.get(hid)]

    def submit(self) -> HabitSubmitResult:
        result = HabitSubmitResult()
        pending = self.outstanding()
        if not pending:
            return result
        if not self.monitor.is_online:
            result.notice = "Offline: habits will be submitted when online"
            return result

        for habit_id in pending:
            try:
                self.gateway.set_habit_done(habit_id, True)
            except RemoteUnavailable as exc:
                self.monitor.mark_offline()
                result.failed[habit_id] = str(exc)
                break
            except RemoteFailure as exc:
                result.failed[habit_id] = str(exc)
                continue
            result.submitted.append(habit_id)

        with self._lock:
            for habit_id in result.submitted:
                self.locked[habit_id] = True
        if result.failed:
            result.notice = "Failed to submit habits: " + "; ".join(result.failed.values())
            logger.warning(result.notice)
        return result

    # ----- midnight auto-submit -----
    def schedule_midnight_submit(self) -> None:
        self.cancel()
        self._timer = threading.Timer(seconds_until_midnight(), self._midnight)
        self._timer.daemon = True
        self._timer.start()

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _midnight(self) -> None:
        if self.outstanding():
            self.submit()
        self.schedule_midnight_submit()


__all__ = ["HabitSubmitResult", "HabitTracker"]
