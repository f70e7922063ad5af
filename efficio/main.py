"""Command line front end for the Efficio sync core."""
from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import List, Optional

from efficio.core.settings import SYNC
from efficio.core.statuses import PRIORITIES, TASK_STATUSES
from efficio.services.connectivity import ConnectivityMonitor
from efficio.services.context import AppContext
from efficio.services.errors import NotFound, ValidationError
from efficio.storage.local_store import Collection


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


def _print_tasks(records) -> None:
    if not records:
        print("No tasks.")
        return
    for task in records:
        due = task.due_date.isoformat() if task.due_date else "-"
        print(f"{task.local_id:>4}  [{task.sync_status:<7}] {task.status:<10} {task.priority:<6} {due:<10}  {task.title}")


def _notice(message: Optional[str]) -> None:
    if message:
        print(f"! {message}", file=sys.stderr)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="efficio", description=__doc__ or "")
    parser.add_argument("--offline", action="store_true", help="Do not contact the workspace proxy")
    parser.add_argument("--no-startup", action="store_true", help="Skip the start-up sync sequence")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("sync", help="Run the start-up sync sequence and report")

    ls = sub.add_parser("list", help="List tasks from the local store")
    ls.add_argument("--archived", action="store_true")

    add = sub.add_parser("add", help="Create a task")
    add.add_argument("title")
    add.add_argument("--category", default="Work")
    add.add_argument("--priority", choices=PRIORITIES, default="medium")
    add.add_argument("--due", default=None, help="YYYY-MM-DD")
    add.add_argument("--status", choices=TASK_STATUSES, default="pending")

    st = sub.add_parser("status", help="Change a task status")
    st.add_argument("local_id", type=int)
    st.add_argument("new_status", choices=TASK_STATUSES)

    ar = sub.add_parser("archive", help="Move a task to the archive")
    ar.add_argument("local_id", type=int)

    sub.add_parser("habits", help="Fetch and list habits")

    done = sub.add_parser("habit-done", help="Mark habits as done for today")
    done.add_argument("habit_ids", nargs="+")

    watch = sub.add_parser("watch", help="Stay running and sync whenever connectivity returns")
    watch.add_argument("--interval", type=float, default=SYNC.probe_interval_sec)
    return parser


def run(argv: Optional[List[str]] = None, context: Optional[AppContext] = None) -> int:
    args = _build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    if context is None:
        monitor = ConnectivityMonitor(online=False) if args.offline else None
        context = AppContext(monitor=monitor, notify=_notice)
    ctx = context
    if args.command == "watch":
        ctx.monitor.interval_sec = args.interval

    report = ctx.open(run_startup=not args.no_startup and args.command != "list")
    try:
        if report:
            for message in report.notices:
                _notice(message)

        if args.command == "sync":
            snap = ctx.snapshot()
            print(
                f"{'online' if snap['online'] else 'offline'}: "
                f"{snap['tasks']} task(s), {snap['archived']} archived, {snap['unsynced']} unsynced"
            )
        elif args.command == "list":
            collection = Collection.ARCHIVED if args.archived else Collection.TASKS
            _print_tasks(ctx.store.list_all(collection))
        elif args.command == "add":
            result = ctx.sync.create_task(
                args.title,
                category=args.category,
                priority=args.priority,
                due_date=args.due,
                status=args.status,
            )
            print(f"Created task {result.record.local_id} ({result.record.sync_status})")
        elif args.command == "status":
            result = ctx.sync.update_status(args.local_id, args.new_status)
            print(f"Task {args.local_id}: {result.record.status} ({result.record.sync_status})")
        elif args.command == "archive":
            result = ctx.sync.archive(args.local_id)
            print(f"Archived as {result.record.local_id} ({result.record.sync_status})")
        elif args.command == "habits":
            _notice(ctx.habits.refresh())
            for habit in ctx.habits.habits:
                print(f"{habit.id}  {habit.habit}  {habit.description}")
        elif args.command == "habit-done":
            _notice(ctx.habits.refresh())
            for habit_id in args.habit_ids:
                ctx.habits.toggle(habit_id)
            outcome = ctx.habits.submit()
            _notice(outcome.notice)
            print(f"Submitted {len(outcome.submitted)} habit(s)")
        elif args.command == "watch":
            ctx.monitor.start()
            ctx.habits.schedule_midnight_submit()
            print("Watching connectivity, Ctrl+C to stop")
            try:
                while True:
                    time.sleep(1)
            except KeyboardInterrupt:
                pass
    except (ValidationError, NotFound) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    finally:
        ctx.close()
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
