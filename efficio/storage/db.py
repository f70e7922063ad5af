# efficio/storage/db.py
from pathlib import Path
from typing import Callable, Optional, Union

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from efficio.core.settings import STORE

# Ensure SQLModel metadata is populated
import efficio.models.task  # noqa: F401
import efficio.models.time_block  # noqa: F401
from efficio.storage import migrations


def create_store_engine(db_path: Optional[Union[str, Path]] = None, *, echo: Optional[bool] = None) -> Engine:
    """Create the SQLite engine backing the local store.

    The connectivity probe thread may trigger writes, so connections are not
    pinned to the creating thread.
    """

    path = Path(db_path or STORE.db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        f"sqlite:///{path.as_posix()}",
        echo=STORE.echo_sql if echo is None else echo,
        connect_args={"check_same_thread": False},
    )


def init_db(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)
    migrations.run_all(engine)


def session_factory(engine: Engine) -> Callable[[], Session]:
    def factory() -> Session:
        return Session(engine, expire_on_commit=False)

    return factory


__all__ = ["create_store_engine", "init_db", "session_factory"]
