from __future__ import annotations

import os
from logging.config import fileConfig
from typing import Any, Dict

from alembic import context
from sqlalchemy import Connection, engine_from_config, pool

from barberflow.config import get_settings
from barberflow.models import Base  # noqa: F401
from migrations.seed.runner import run_seed_steps

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

_SYNC_DRIVERS = {"sqlite+aiosqlite": "sqlite+pysqlite"}


def _get_database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if not url:
        url = get_settings().database_url
    if not url:
        raise RuntimeError("DATABASE_URL is required for migrations.")
    for async_driver, sync_driver in _SYNC_DRIVERS.items():
        if url.startswith(async_driver):
            return url.replace(async_driver, sync_driver, 1)
    return url


def run_migrations_offline() -> None:
    context.configure(
        url=_get_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        render_as_batch=connection.dialect.name == "sqlite",
    )

    with context.begin_transaction():
        context.run_migrations()
        run_seed_steps(connection)


def run_migrations_online() -> None:
    configuration: Dict[str, Any] = {
        "sqlalchemy.url": _get_database_url(),
    }
    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        do_run_migrations(connection)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
