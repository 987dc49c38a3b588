"""Centralized database engine factory.

The orchestrator, the Dagster resource and the scripts share a single SQLAlchemy
engine per process. Each recalculation opens its own session from the shared
factory, so jobs recalculated in parallel threads never share a session.

URL resolution order:
  1. RANKING_DATABASE_URL (any SQLAlchemy URL, e.g. sqlite:///rankings.db)
  2. POSTGRES_HOST / POSTGRES_PORT / POSTGRES_USER / POSTGRES_PASSWORD / POSTGRES_DB

SQLite connections get foreign keys switched on so the ON DELETE CASCADE rules on
rankings behave the same way they do on PostgreSQL.
"""

import os
import threading

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

_lock = threading.Lock()
_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def _build_url() -> str:
    url = os.getenv("RANKING_DATABASE_URL")
    if url:
        return url
    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT", "5432")
    user = os.getenv("POSTGRES_USER", "ranking")
    password = os.getenv("POSTGRES_PASSWORD", "ranking_dev")
    database = os.getenv("POSTGRES_DB", "candidate_ranking")
    return f"postgresql://{user}:{password}@{host}:{port}/{database}"


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _create_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_engine(url, pool_pre_ping=True)


def configure_engine(url: str) -> Engine:
    """Replace the process-wide engine, e.g. to point tests or scripts at another database."""
    global _engine, _session_factory
    with _lock:
        if _engine is not None:
            _engine.dispose()
        _engine = _create_engine(url)
        _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)
    return _engine


def get_engine() -> Engine:
    """Return the process-wide SQLAlchemy engine, creating it on first call."""
    global _engine, _session_factory
    if _engine is None:
        with _lock:
            if _engine is None:
                _engine = _create_engine(_build_url())
                _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)
    return _engine


def get_session() -> Session:
    """Create a new session from the shared engine."""
    get_engine()
    return _session_factory()
