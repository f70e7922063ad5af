"""Online/offline signal shared by every component that talks to the remote."""
from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional


logger = logging.getLogger("efficio.sync.connectivity")

Probe = Callable[[], bool]
OnlineListener = Callable[[], None]


class ConnectivityMonitor:
    """Holds the current connectivity flag and fires listeners on reconnect.

    Nothing here waits for the network: callers read :attr:`is_online` and
    branch. The optional probe thread only flips the flag.
    """

    def __init__(
        self,
        probe: Optional[Probe] = None,
        *,
        online: bool = False,
        interval_sec: float = 15.0,
    ) -> None:
        self._probe = probe
        self._online = bool(online)
        self._interval = max(float(interval_sec), 0.1)
        self._lock = threading.Lock()
        self._listeners: List[OnlineListener] = []
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_online(self) -> bool:
        return self._online

    @property
    def interval_sec(self) -> float:
        return self._interval

    @interval_sec.setter
    def interval_sec(self, value: float) -> None:
        self._interval = max(float(value), 0.1)

    def subscribe(self, callback: OnlineListener) -> None:
        with self._lock:
            if callback not in self._listeners:
                self._listeners.append(callback)

    def unsubscribe(self, callback: OnlineListener) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def set_online(self, value: bool) -> bool:
        """Update the flag; returns True when this call moved offline -> online."""
        with self._lock:
            previous = self._online
            self._online = bool(value)
            came_online = self._online and not previous
            listeners = list(self._listeners) if came_online else []
        if previous != self._online:
            logger.info("Connectivity changed: %s", "online" if self._online else "offline")
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception("Reconnect listener %r failed", listener)
        return came_online

    def mark_offline(self) -> None:
        self.set_online(False)

    def check(self) -> bool:
        if self._probe is None:
            return self._online
        try:
            reachable = bool(self._probe())
        except Exception as exc:
            logger.warning("Connectivity probe crashed: %s", exc)
            reachable = False
        self.set_online(reachable)
        return reachable

    # ----- background probing -----
    def start(self) -> None:
        if self._probe is None or (self._thread and self._thread.is_alive()):
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="efficio-connectivity", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            self.check()


__all__ = ["ConnectivityMonitor"]
