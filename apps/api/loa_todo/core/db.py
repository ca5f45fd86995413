"""
Engine for the social/backup tables.

DATABASE_URL:
- sqlite:///./data/app.db (default; relative paths resolve against the repo root)
- postgres://... or postgresql://... (hosted Postgres; driven through psycopg)
DB_AUTO_CREATE=1 creates missing tables at startup instead of running alembic.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

_engine: Optional[Engine] = None


def get_database_url() -> str:
    return os.getenv("DATABASE_URL", "sqlite:///./data/app.db")


def resolve_sqlite_path(database_url: str) -> Optional[Path]:
    if not database_url.startswith("sqlite:///"):
        return None
    p = Path(database_url[len("sqlite:///") :])
    if p.is_absolute():
        return p
    # apps/api/loa_todo/core/db.py -> repo root = parents[4]
    return (Path(__file__).resolve().parents[4] / p).resolve()


def db_kind(database_url: str) -> str:
    scheme = database_url.split(":", 1)[0]
    if scheme.startswith("sqlite"):
        return "sqlite"
    if scheme.startswith("postgres"):
        return "postgresql"
    return "unknown"


def engine_url(database_url: str) -> str:
    """Rewrite DATABASE_URL into the form SQLAlchemy should connect with."""
    sp = resolve_sqlite_path(database_url)
    if sp is not None:
        return "sqlite:///" + sp.as_posix()
    for prefix in ("postgres://", "postgresql://"):
        if database_url.startswith(prefix):
            return "postgresql+psycopg://" + database_url[len(prefix) :]
    return database_url


def _enable_sqlite_fks(dbapi_conn, _record) -> None:
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()


def get_engine() -> Engine:
    global _engine
    if _engine is not None:
        return _engine

    raw = get_database_url()
    url = engine_url(raw)
    if db_kind(raw) == "sqlite":
        sp = resolve_sqlite_path(raw)
        if sp is not None:
            sp.parent.mkdir(parents=True, exist_ok=True)
        _engine = create_engine(url, future=True, connect_args={"check_same_thread": False})
        event.listen(_engine, "connect", _enable_sqlite_fks)
    else:
        _engine = create_engine(url, future=True, pool_pre_ping=True)
    return _engine


def dispose_engine() -> None:
    """Drop the cached engine so the next call re-reads DATABASE_URL."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


def auto_create_enabled() -> bool:
    return os.getenv("DB_AUTO_CREATE", "1") == "1"


def init_db() -> None:
    from loa_todo.modules.social import models  # noqa: F401

    SQLModel.metadata.create_all(get_engine())


def db_health() -> Dict[str, Any]:
    raw = get_database_url()
    sp = resolve_sqlite_path(raw)
    # never echo credentials
    where = sp.as_posix() if sp is not None else raw.rsplit("@", 1)[-1]
    out: Dict[str, Any] = {"kind": db_kind(raw), "path": where}
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        out.update(status="error", error=str(e))
    else:
        out["status"] = "ok"
    return out
