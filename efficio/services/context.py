"""Explicitly constructed application context.

One instance owns the store, gateway, connectivity flag and every service
built on them, so several independent instances can coexist (tests create
one per temporary database).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Callable, List, Optional

from sqlalchemy.engine import Engine

from efficio.core.settings import CONFIG_PATH, STORE, SYNC, SyncSettings
from efficio.services.archival import ArchivalPolicy, ArchivalReport
from efficio.services.connectivity import ConnectivityMonitor
from efficio.services.gateway import RemoteGateway
from efficio.services.habits import HabitTracker
from efficio.services.sync_engine import RefreshResult, SweepReport, SyncEngine
from efficio.services.time_blocks import TimeBlockService
from efficio.services.unsynced import UnsyncedCounter
from efficio.storage.config import load_config, update_config
from efficio.storage.db import create_store_engine, init_db
from efficio.storage.local_store import Collection, LocalStore
from efficio.utils.datetime_utils import utc_now


logger = logging.getLogger("efficio.sync.context")


@dataclass
class StartupReport:
    sweep: Optional[SweepReport] = None
    tasks: Optional[RefreshResult] = None
    archival: Optional[ArchivalReport] = None
    archived: Optional[RefreshResult] = None
    notices: List[str] = field(default_factory=list)


class AppContext:
    def __init__(
        self,
        settings: SyncSettings = SYNC,
        *,
        engine: Optional[Engine] = None,
        gateway: Optional[RemoteGateway] = None,
        monitor: Optional[ConnectivityMonitor] = None,
        config_path: Optional[Path] = None,
        notify: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.settings = settings
        self.config_path = config_path or CONFIG_PATH
        user_config = load_config(self.config_path)

        self.engine = engine or create_store_engine(STORE.db_path)
        self.gateway = gateway or RemoteGateway(
            user_config.gateway_url or settings.gateway_url,
            health_url=user_config.health_url or settings.health_url,
            timeout=settings.request_timeout_sec,
        )
        self.monitor = monitor or ConnectivityMonitor(
            None if settings.start_offline else self.gateway.ping,
            online=False,
            interval_sec=settings.probe_interval_sec,
        )
        self.store = LocalStore(self.engine)
        self.sync = SyncEngine(self.store, self.gateway, self.monitor, settings=settings, notify=notify)
        self.archival = ArchivalPolicy(self.sync, after_days=settings.auto_archive_after_days)
        self.unsynced = UnsyncedCounter(self.store)
        self.habits = HabitTracker(self.gateway, self.monitor)
        self.time_blocks = TimeBlockService(self.store, self.gateway, self.monitor)
        self._opened = False

    # ----- lifecycle -----
    def open(self, *, run_startup: bool = True, today: Optional[date] = None) -> Optional[StartupReport]:
        if self._opened:
            return None
        init_db(self.engine)
        self.unsynced.attach()
        self._opened = True
        # Probe before subscribing: start-up runs its own sweep.
        self.monitor.check()
        self.monitor.subscribe(self._on_reconnect)
        self.monitor.start()
        if run_startup:
            return self.startup(today=today)
        return None

    def startup(self, today: Optional[date] = None) -> StartupReport:
        """Start-up sequence: push local changes, refetch, auto-archive, refetch the archive."""

        report = StartupReport()
        if self.monitor.is_online:
            report.sweep = self.sync.retry_sweep()
        report.tasks = self.sync.refresh_tasks()
        if report.tasks.replaced:
            update_config(self.config_path, last_tasks_refresh=utc_now().isoformat())
        report.archival = self.archival.run(today)
        report.archived = self.sync.refresh_archived()
        if report.archived.replaced:
            update_config(self.config_path, last_archive_refresh=utc_now().isoformat())

        for result in (report.tasks, report.archived):
            if result.notice:
                report.notices.append(result.notice)
        report.notices.extend(report.archival.notices)
        return report

    def close(self) -> None:
        self.monitor.stop()
        self.monitor.unsubscribe(self._on_reconnect)
        self.habits.cancel()
        self.unsynced.detach()
        self.gateway.close()
        self.engine.dispose()
        self._opened = False

    def __enter__(self) -> "AppContext":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ----- reconnect -----
    def _on_reconnect(self) -> None:
        logger.info("Back online, running retry sweep")
        self.sync.retry_sweep()
        self.time_blocks.retry_pending()

    def snapshot(self) -> dict:
        return {
            "online": self.monitor.is_online,
            "tasks": len(self.store.list_all(Collection.TASKS)),
            "archived": len(self.store.list_all(Collection.ARCHIVED)),
            "unsynced": self.unsynced.count,
        }


__all__ = ["AppContext", "StartupReport"]
