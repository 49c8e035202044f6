"""
core/db.py -- Engine construction shared by kanban/store.py and auth/store.py.

Both stores talk to SQLite by default and to anything SQLAlchemy supports
when KANBAN_DB_URL / AUTH_DB_URL say so. The SQLite-only tweaks live here.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _enable_wal(dbapi_conn, connection_record) -> None:
    # journal_mode is per connection, so it is set on every pool checkout source.
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an Engine for db_url.

    SQLite connections are opened with check_same_thread=False because
    FastAPI runs sync route handlers on a thread pool.
    """
    if not db_url.startswith("sqlite"):
        return create_engine(db_url, pool_pre_ping=True)
    engine = create_engine(db_url, connect_args={"check_same_thread": False})
    event.listen(engine, "connect", _enable_wal)
    return engine


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
