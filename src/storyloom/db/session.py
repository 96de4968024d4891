"""SQLite engine and session factories for the record store.

One RecordStore (engine plus session factory) exists per resolved database
path. Stores are created lazily and may be requested from the event loop
thread, FastAPI's threadpool, or the worker threads that run sink writes, so
creation is guarded by a lock.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from storyloom.core.settings import DEFAULT_DB_PATH
from storyloom.db.schema import Base

logger = logging.getLogger(__name__)

# Seconds a writer waits on a locked database before sqlite gives up
SQLITE_BUSY_TIMEOUT_S = 15

_stores: dict[str, RecordStore] = {}
_stores_lock = threading.Lock()


@dataclass(frozen=True)
class RecordStore:
    """Engine and session factory bound to one database file."""

    path: Path
    engine: Engine
    session_factory: sessionmaker

    def session(self) -> Session:
        return self.session_factory()


def _create_store(path: Path) -> RecordStore:
    path.parent.mkdir(parents=True, exist_ok=True)
    # A single shared connection; check_same_thread=False lets sink threads use it
    engine = create_engine(
        f"sqlite:///{path}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_S},
        poolclass=StaticPool,
    )
    logger.info(f"Opened record store at {path}")
    return RecordStore(path=path, engine=engine, session_factory=sessionmaker(bind=engine))


def get_store(db_path: Path | None = None) -> RecordStore:
    """Get the cached store for `db_path` (default: data/storyloom.db)."""
    path = Path(db_path) if db_path is not None else DEFAULT_DB_PATH
    key = str(path.resolve())
    with _stores_lock:
        store = _stores.get(key)
        if store is None:
            store = _stores[key] = _create_store(path)
    return store


def get_engine(db_path: Path | None = None) -> Engine:
    return get_store(db_path).engine


def get_session(db_path: Path | None = None) -> Session:
    """Open a session on the record store. Caller is responsible for closing it."""
    return get_store(db_path).session()


def init_db(db_path: Path | None = None) -> None:
    """Create the generated_records table if it does not exist yet."""
    Base.metadata.create_all(get_engine(db_path))


def dispose_stores() -> None:
    """Close every cached engine and forget it. Used on application shutdown."""
    with _stores_lock:
        stores = list(_stores.values())
        _stores.clear()
    for store in stores:
        store.engine.dispose()
