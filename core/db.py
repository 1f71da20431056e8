"""
core/db.py -- Engine construction and pagination helpers shared by the stores.

Both auth/store.py and rbac/store.py are SQLAlchemy Core repositories over the
same database URL. They build their engines here so the SQLite connection
settings (cross-thread use, WAL journal) are applied identically.

Layer rule: no imports from auth/, passwords/, or rbac/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

DEFAULT_PAGE_SIZE = 10


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_page(page: int, page_size: int) -> tuple[int, int]:
    """Clamp pagination input: page < 1 -> 1, page_size < 1 -> DEFAULT_PAGE_SIZE."""
    return max(page, 1), page_size if page_size > 0 else DEFAULT_PAGE_SIZE
