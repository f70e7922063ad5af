"""Ad-hoc database migrations for the local store."""

from __future__ import annotations

from sqlalchemy import text


TASK_TABLES = ("tasks", "archived_tasks")


def _column_exists(conn, table: str, column: str) -> bool:
    result = conn.execute(text(f"PRAGMA table_info('{table}')"))
    return any(row[1] == column for row in result)


def ensure_sync_bookkeeping(conn) -> None:
    """Stores created before retry backoff existed lack these columns."""
    columns = {
        "sync_attempts": "INTEGER NOT NULL DEFAULT 0",
        "next_retry_at": "DATETIME",
        "last_error": "TEXT",
    }
    for table in TASK_TABLES:
        for name, ddl_type in columns.items():
            if not _column_exists(conn, table, name):
                conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {ddl_type}"))


def ensure_archive_columns(conn) -> None:
    if not _column_exists(conn, "archived_tasks", "source_remote_id"):
        conn.execute(text("ALTER TABLE archived_tasks ADD COLUMN source_remote_id TEXT"))
    if not _column_exists(conn, "archived_tasks", "archived_at"):
        conn.execute(text("ALTER TABLE archived_tasks ADD COLUMN archived_at DATETIME"))
    conn.execute(
        text(
            """
            UPDATE archived_tasks
            SET archived_at = updated_at
            WHERE archived_at IS NULL
            """
        )
    )


def ensure_sync_status_indexes(conn) -> None:
    for table in TASK_TABLES + ("time_blocks",):
        conn.execute(
            text(f"CREATE INDEX IF NOT EXISTS ix_{table}_sync_status ON {table} (sync_status)")
        )


def run_all(engine) -> None:
    with engine.begin() as conn:
        ensure_sync_bookkeeping(conn)
        ensure_archive_columns(conn)
        ensure_sync_status_indexes(conn)


__all__ = ["run_all"]
