"""Alembic environment for the discussion schema.

The URL always comes from `DATABASE_URL` (via Settings), never from alembic.ini.
"""

from __future__ import annotations

from logging.config import fileConfig

import delphi.models  # noqa: F401 - register tables on SQLModel.metadata
from alembic import context
from delphi.core.database import normalize_db_url
from delphi.core.settings import settings
from sqlalchemy import create_engine, pool
from sqlmodel import SQLModel

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

DB_URL = normalize_db_url(settings.database_url)
target_metadata = SQLModel.metadata


def _configure_kwargs(url: str) -> dict:
    # SQLite cannot ALTER most constraints in place; batch mode rebuilds tables.
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit SQL to stdout without a live connection."""

    context.configure(
        url=DB_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(DB_URL),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(DB_URL, poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs(DB_URL))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
