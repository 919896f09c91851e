from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

logger = logging.getLogger(__name__)

DEFAULT_DB_URL = "sqlite:///data/landregistry.db"
DEFAULT_LOCK_TIMEOUT_SECONDS = 5.0


def get_db_url() -> str:
    return os.getenv("LANDREGISTRY_DB_URL") or DEFAULT_DB_URL


def _ensure_sqlite_parent_dir(db_url: str) -> None:
    # sqlite:///relative/path.db or sqlite:////abs/path.db
    if not db_url.startswith("sqlite:"):
        return
    if db_url.startswith("sqlite:////"):
        path = db_url.replace("sqlite:////", "/", 1)
    elif db_url.startswith("sqlite:///"):
        path = db_url.replace("sqlite:///", "", 1)
    else:
        # sqlite:// (rare) or sqlite:pure-memory
        return
    if path in (":memory:", ""):
        return
    Path(path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


def _install_sqlite_write_lock(engine: Engine) -> None:
    # pysqlite defers BEGIN until the first write; take the database write lock up
    # front so two approvals of the same parcel serialize on BEGIN.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _install_postgres_lock_timeout(engine: Engine, lock_timeout_seconds: float) -> None:
    timeout_ms = max(1, int(lock_timeout_seconds * 1000))

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql(f"SET LOCAL lock_timeout = '{timeout_ms}ms'")


def create_db_engine(
    db_url: Optional[str] = None,
    *,
    lock_timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
    echo: bool = False,
) -> Engine:
    url = db_url or get_db_url()
    _ensure_sqlite_parent_dir(url)
    connect_args = {}
    if url.startswith("sqlite:"):
        connect_args = {"check_same_thread": False, "timeout": lock_timeout_seconds}
    engine = create_engine(url, future=True, pool_pre_ping=True, echo=echo, connect_args=connect_args)
    if engine.dialect.name == "sqlite":
        _install_sqlite_write_lock(engine)
    elif engine.dialect.name == "postgresql":
        _install_postgres_lock_timeout(engine, lock_timeout_seconds)
    logger.debug("Created %s engine (lock timeout %.2fs)", engine.dialect.name, lock_timeout_seconds)
    return engine


def create_session_factory(engine: Engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


class SessionProvider:
    """Light wrapper to create/close SQLAlchemy sessions."""

    def __init__(
        self,
        db_url: Optional[str] = None,
        *,
        lock_timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
        echo: bool = False,
    ):
        self.db_url = db_url or get_db_url()
        self.lock_timeout_seconds = lock_timeout_seconds
        self.engine = create_db_engine(self.db_url, lock_timeout_seconds=lock_timeout_seconds, echo=echo)
        self._factory = create_session_factory(self.engine)

    def session(self) -> Session:
        return self._factory()

    def dispose(self) -> None:
        self.engine.dispose()
