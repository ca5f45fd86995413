from __future__ import annotations

import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import create_engine, pool
from sqlmodel import SQLModel

# apps/api on sys.path so `loa_todo` imports without an install
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from loa_todo.core.db import engine_url, get_database_url, resolve_sqlite_path  # noqa: E402
from loa_todo.modules.social import models  # noqa: E402,F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata


def get_url() -> str:
    """DATABASE_URL wins over alembic.ini; relative sqlite paths resolve like the app does."""
    raw = get_database_url()
    sp = resolve_sqlite_path(raw)
    if sp is not None:
        sp.parent.mkdir(parents=True, exist_ok=True)
    return engine_url(raw)


def run_migrations_offline() -> None:
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = get_url()
    connectable = create_engine(url, poolclass=pool.NullPool, future=True)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            # sqlite cannot ALTER most constraints in place
            render_as_batch=url.startswith("sqlite"),
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
