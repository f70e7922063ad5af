"""Durable local record storage for the sync engine.

Each public method runs in its own session and commits once, so callers
never observe a half-applied write. Committed writes are announced to
subscribers, which is how the unsynced indicator stays current without
polling.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Type

from sqlalchemy import delete as sa_delete
from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, select

from efficio.core.statuses import UNSYNCED
from efficio.models.task import ArchivedTask, Task
from efficio.models.time_block import TimeBlock
from efficio.services.errors import NotFound
from efficio.storage.db import session_factory


logger = logging.getLogger("efficio.sync.store")


class Collection:
    TASKS = "tasks"
    ARCHIVED = "archived_tasks"
    TIME_BLOCKS = "time_blocks"


COLLECTION_MODELS: Dict[str, Type[SQLModel]] = {
    Collection.TASKS: Task,
    Collection.ARCHIVED: ArchivedTask,
    Collection.TIME_BLOCKS: TimeBlock,
}

StoreListener = Callable[[str, str, Optional[int]], None]


def _model_for(collection: str) -> Type[SQLModel]:
    try:
        return COLLECTION_MODELS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection}") from None


def _check_fields(model: Type[SQLModel], fields: Iterable[str]) -> None:
    unknown = [name for name in fields if name not in model.model_fields]
    if unknown:
        raise ValueError(f"Unknown {model.__name__} field(s): {', '.join(sorted(unknown))}")


def _copy_fields(record: SQLModel, model: Type[SQLModel]) -> Dict[str, Any]:
    data = record.model_dump(exclude={"local_id"})
    return {key: value for key, value in data.items() if key in model.model_fields}


class LocalStore:
    """Key-indexed access to the ``tasks``, ``archived_tasks`` and ``time_blocks`` tables."""

    def __init__(self, engine: Engine, *, session_factory_fn: Optional[Callable[[], Session]] = None) -> None:
        self.engine = engine
        self._session_factory = session_factory_fn or session_factory(engine)
        self._listeners: List[StoreListener] = []
        self._listeners_lock = threading.Lock()

    # ----- events -----
    def subscribe(self, callback: StoreListener) -> None:
        with self._listeners_lock:
            if callback not in self._listeners:
                self._listeners.append(callback)

    def unsubscribe(self, callback: StoreListener) -> None:
        with self._listeners_lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _emit(self, collection: str, action: str, local_id: Optional[int] = None) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(collection, action, local_id)
            except Exception:
                logger.exception("Store listener %r failed on %s/%s", listener, collection, action)

    # ----- single records -----
    def insert(self, collection: str, record: Optional[SQLModel] = None, **fields: Any) -> SQLModel:
        model = _model_for(collection)
        if record is None:
            _check_fields(model, fields)
            record = model(**fields)
        elif not isinstance(record, model):
            raise ValueError(f"{type(record).__name__} cannot be stored in {collection}")
        with self._session_factory() as session:
            session.add(record)
            session.commit()
            session.refresh(record)
        self._emit(collection, "insert", record.local_id)
        return record

    def get(self, collection: str, local_id: int) -> Optional[SQLModel]:
        model = _model_for(collection)
        with self._session_factory() as session:
            return session.get(model, local_id)

    def update(self, collection: str, local_id: int, **fields: Any) -> SQLModel:
        model = _model_for(collection)
        _check_fields(model, fields)
        with self._session_factory() as session:
            obj = session.get(model, local_id)
            if obj is None:
                raise NotFound(collection, local_id)
            for key, value in fields.items():
                setattr(obj, key, value)
            session.add(obj)
            session.commit()
            session.refresh(obj)
        self._emit(collection, "update", local_id)
        return obj

    def delete(self, collection: str, local_id: int) -> bool:
        model = _model_for(collection)
        with self._session_factory() as session:
            obj = session.get(model, local_id)
            if obj is None:
                return False
            session.delete(obj)
            session.commit()
        self._emit(collection, "delete", local_id)
        return True

    def transfer(self, source: str, local_id: int, destination: str, **overrides: Any) -> SQLModel:
        """Move a record between collections in one transaction; the copy gets a new id."""
        source_model = _model_for(source)
        target_model = _model_for(destination)
        _check_fields(target_model, overrides)
        with self._session_factory() as session:
            obj = session.get(source_model, local_id)
            if obj is None:
                raise NotFound(source, local_id)
            data = _copy_fields(obj, target_model)
            data.update(overrides)
            moved = target_model(**data)
            session.delete(obj)
            session.add(moved)
            session.commit()
            session.refresh(moved)
        self._emit(source, "delete", local_id)
        self._emit(destination, "insert", moved.local_id)
        return moved

    # ----- queries -----
    def list_all(self, collection: str) -> List[SQLModel]:
        model = _model_for(collection)
        with self._session_factory() as session:
            stmt = select(model).order_by(model.local_id.asc())
            return list(session.exec(stmt))

    def list_where(self, collection: str, field: str, predicate: Any) -> List[SQLModel]:
        """Filter on ``field``: a plain value matches by equality, a
        list/tuple/set by membership, and a callable is applied per record."""

        model = _model_for(collection)
        _check_fields(model, [field])
        if callable(predicate):
            return [row for row in self.list_all(collection) if predicate(getattr(row, field))]

        column = getattr(model, field)
        with self._session_factory() as session:
            stmt = select(model)
            if isinstance(predicate, (list, tuple, set, frozenset)):
                stmt = stmt.where(column.in_(list(predicate)))
            elif predicate is None:
                stmt = stmt.where(column.is_(None))
            else:
                stmt = stmt.where(column == predicate)
            stmt = stmt.order_by(model.local_id.asc())
            return list(session.exec(stmt))

    def count_where(self, collection: str, field: str, predicate: Any) -> int:
        model = _model_for(collection)
        _check_fields(model, [field])
        if callable(predicate):
            return len(self.list_where(collection, field, predicate))
        column = getattr(model, field)
        with self._session_factory() as session:
            stmt = select(func.count()).select_from(model)
            if isinstance(predicate, (list, tuple, set, frozenset)):
                stmt = stmt.where(column.in_(list(predicate)))
            elif predicate is None:
                stmt = stmt.where(column.is_(None))
            else:
                stmt = stmt.where(column == predicate)
            return int(session.exec(stmt).one())

    # ----- bulk -----
    def bulk_insert(self, collection: str, rows: Iterable[Mapping[str, Any]]) -> int:
        model = _model_for(collection)
        records = []
        for row in rows:
            _check_fields(model, row)
            records.append(model(**dict(row)))
        if not records:
            return 0
        with self._session_factory() as session:
            session.add_all(records)
            session.commit()
        self._emit(collection, "insert")
        return len(records)

    def clear(self, collection: str) -> int:
        model = _model_for(collection)
        with self._session_factory() as session:
            result = session.connection().execute(sa_delete(model))
            session.commit()
            removed = int(result.rowcount or 0)
        self._emit(collection, "clear")
        return removed

    def replace_all(
        self,
        collection: str,
        rows: Iterable[Mapping[str, Any]],
        *,
        keep_unsynced: bool = False,
    ) -> int:
        """Clear and refill ``collection`` in one transaction.

        With ``keep_unsynced`` only synced rows are cleared; records awaiting
        confirmation stay, and incoming rows carrying one of their remote ids
        are skipped. Returns the number of rows inserted.
        """

        model = _model_for(collection)
        records = []
        for row in rows:
            _check_fields(model, row)
            records.append(model(**dict(row)))
        with self._session_factory() as session:
            if keep_unsynced:
                unsynced = model.sync_status.in_(list(UNSYNCED))
                kept_ids = set(
                    session.exec(select(model.remote_id).where(unsynced, model.remote_id.is_not(None)))
                )
                session.connection().execute(sa_delete(model).where(~unsynced))
                records = [r for r in records if r.remote_id is None or r.remote_id not in kept_ids]
            else:
                session.connection().execute(sa_delete(model))
            session.add_all(records)
            session.commit()
        self._emit(collection, "replace")
        return len(records)


__all__ = ["Collection", "COLLECTION_MODELS", "LocalStore", "StoreListener"]
