from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from sqlalchemy import Engine, create_engine, event, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from db.models import Base
from domain.errors import StoreFailure

logger = logging.getLogger(__name__)

_ATOMIC_DEPTH = "atomic_depth"


def _emit_sqlite_begin(engine: Engine) -> None:
    # pysqlite defers BEGIN until the first write; emit it ourselves so reads
    # taken before a write belong to the same transaction.
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(connection: Any) -> None:
        connection.exec_driver_sql("BEGIN")


def create_db_engine(db_url: str, *, echo: bool = False, reset: bool = False, **engine_kwargs: Any) -> Engine:
    url = make_url(db_url)
    is_sqlite = url.get_backend_name() == "sqlite"
    if is_sqlite and url.database and url.database != ":memory:":
        path = Path(url.database)
        if reset and path.exists():
            path.unlink()
        path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url, echo=echo, **engine_kwargs)
    if is_sqlite:
        _emit_sqlite_begin(engine)
    Base.metadata.create_all(engine)
    return engine


def init_db(db_url: str, *, echo: bool = False, reset: bool = False) -> sessionmaker[Session]:
    return sessionmaker(create_db_engine(db_url, echo=echo, reset=reset))


@contextmanager
def atomic(session: Session) -> Iterator[Session]:
    """Run a block as one unit of work: commit on success, roll back on any error.

    Nested blocks on the same session join the outermost one, which alone
    commits. Store errors are logged with their detail and re-raised as an
    opaque StoreFailure; domain errors pass through unchanged.
    """
    depth = session.info.get(_ATOMIC_DEPTH, 0)
    session.info[_ATOMIC_DEPTH] = depth + 1
    try:
        yield session
        if depth == 0:
            session.commit()
    except SQLAlchemyError as exc:
        if depth:
            raise
        session.rollback()
        logger.exception("Store operation failed, transaction rolled back")
        raise StoreFailure() from exc
    except BaseException:
        if depth == 0:
            session.rollback()
        raise
    finally:
        session.info[_ATOMIC_DEPTH] = depth
