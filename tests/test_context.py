import time
from datetime import date, timedelta

import pytest

from efficio.core.settings import SyncSettings
from efficio.core.statuses import COMPLETED, SYNC_PENDING, SYNC_SYNCED
from efficio.main import _notice, run
from efficio.services.connectivity import ConnectivityMonitor
from efficio.services.context import AppContext
from efficio.services.errors import RemoteFailure
from efficio.storage.config import load_config
from efficio.storage.local_store import Collection


TODAY = date(2024, 6, 20)


@pytest.fixture()
def settings(tmp_path):
    return SyncSettings(log_path=tmp_path / "logs" / "sync.log")


def _context(tmp_path, engine, gateway, monitor, settings):
    return AppContext(
        settings,
        engine=engine,
        gateway=gateway,
        monitor=monitor,
        config_path=tmp_path / "config.json",
    )


def test_startup_pushes_then_refreshes_then_archives(tmp_path, engine, gateway, settings):
    monitor = ConnectivityMonitor(gateway.ping, online=False)
    ctx = _context(tmp_path, engine, gateway, monitor, settings)
    ctx.open(run_startup=False)
    ctx.store.insert(Collection.TASKS, title="queued", sync_status=SYNC_PENDING)
    gateway.tasks["page-old"] = {
        "title": "finished long ago",
        "status": COMPLETED,
        "due_date": TODAY - timedelta(days=9),
    }

    report = ctx.startup(today=TODAY)

    assert report.sweep.synced == 1
    assert report.tasks.replaced is True
    assert len(report.archival.archived) == 1
    assert [t.title for t in ctx.store.list_all(Collection.TASKS)] == ["queued"]
    archived = ctx.store.list_all(Collection.ARCHIVED)
    assert [t.title for t in archived] == ["finished long ago"]
    assert archived[0].sync_status == SYNC_SYNCED
    assert "page-old" not in gateway.tasks
    assert load_config(tmp_path / "config.json").last_tasks_refresh
    ctx.close()


def test_offline_start_keeps_cache_and_reconnect_syncs(tmp_path, engine, gateway, settings):
    gateway.reachable = False
    monitor = ConnectivityMonitor(gateway.ping, online=False)
    ctx = _context(tmp_path, engine, gateway, monitor, settings)

    report = ctx.open(today=TODAY)
    assert report.sweep is None
    assert report.notices
    ctx.sync.create_task("offline note")
    assert ctx.unsynced.count == 1

    gateway.reachable = True
    monitor.check()

    assert ctx.unsynced.count == 0
    assert ctx.snapshot() == {"online": True, "tasks": 1, "archived": 0, "unsynced": 0}
    ctx.close()


def test_two_contexts_are_independent(tmp_path, gateway, settings):
    from efficio.storage.db import create_store_engine

    first = _context(tmp_path / "a", create_store_engine(tmp_path / "a.db"), gateway, ConnectivityMonitor(), settings)
    second = _context(tmp_path / "b", create_store_engine(tmp_path / "b.db"), gateway, ConnectivityMonitor(), settings)
    first.open()
    second.open()

    first.sync.create_task("only in first")

    assert len(first.store.list_all(Collection.TASKS)) == 1
    assert second.store.list_all(Collection.TASKS) == []
    first.close()
    second.close()


def test_cli_add_and_list(tmp_path, engine, gateway, settings, capsys):
    def make():
        return _context(tmp_path, engine, gateway, ConnectivityMonitor(), settings)

    assert run(["--no-startup", "add", "Buy milk", "--priority", "low"], context=make()) == 0
    assert run(["list"], context=make()) == 0

    out = capsys.readouterr().out
    assert "Created task 1 (pending)" in out
    assert "Buy milk" in out


def test_cli_reports_missing_task(tmp_path, engine, gateway, settings, capsys):
    ctx = _context(tmp_path, engine, gateway, ConnectivityMonitor(), settings)

    assert run(["--no-startup", "status", "99", "completed"], context=ctx) == 2
    assert "not found" in capsys.readouterr().err


def test_context_recovers_after_going_offline(tmp_path, engine, gateway, unreachable):
    settings = SyncSettings(log_path=tmp_path / "logs" / "sync.log", probe_interval_sec=0.1)
    monitor = ConnectivityMonitor(gateway.ping, online=False, interval_sec=settings.probe_interval_sec)
    ctx = _context(tmp_path, engine, gateway, monitor, settings)
    ctx.open(run_startup=False)
    assert monitor.is_online is True

    gateway.fail_with["create_task"] = [unreachable]
    created = ctx.sync.create_task("written during an outage").record

    deadline = time.monotonic() + 5
    while time.monotonic() < deadline:
        task = ctx.store.get(Collection.TASKS, created.local_id)
        if task.sync_status == SYNC_SYNCED:
            break
        time.sleep(0.05)
    ctx.close()

    assert task.sync_status == SYNC_SYNCED
    assert task.remote_id in gateway.tasks
    assert monitor.is_online is True


def test_cli_archive_failure_notice_printed_once(tmp_path, engine, gateway, settings, capsys):
    gateway.fail_with["create_archived_task"] = RemoteFailure("archive database unavailable")
    ctx = AppContext(
        settings,
        engine=engine,
        gateway=gateway,
        monitor=ConnectivityMonitor(online=True),
        config_path=tmp_path / "config.json",
        notify=_notice,
    )
    ctx.open(run_startup=False)
    task = ctx.sync.create_task("wrap up").record

    assert run(["--no-startup", "archive", str(task.local_id)], context=ctx) == 0

    captured = capsys.readouterr()
    notices = [line for line in captured.err.splitlines() if line.startswith("! ")]
    assert len(notices) == 1
    assert "archive database unavailable" in notices[0]
    assert "(error)" in captured.out
