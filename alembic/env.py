"""Alembic environment for the IdBridge equivalence cache.

`IdBridgeDB` hands its own connection over through `config.attributes` so
that migrations share the engine and its SQLite pragmas. Running `alembic`
from the command line falls back to the configured data path.
"""

import pathlib
import sys
from logging.config import fileConfig

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection

from alembic import context

sys.path.append(str(pathlib.Path(__file__).resolve().parent.parent))

from idbridge.models.db import Base  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def _database_url() -> str:
    url = config.get_main_option("sqlalchemy.url")
    if url:
        return url
    from idbridge.config.settings import get_config

    return f"sqlite:///{get_config().data_path / 'idbridge.db'}"


def _configure(**kwargs) -> None:
    # SQLite cannot ALTER most columns, so schema changes go through batch mode
    context.configure(
        target_metadata=Base.metadata,
        compare_type=True,
        render_as_batch=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit the migration SQL without a database connection."""
    _configure(
        url=_database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_on(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Migrate through the caller's connection, or open one from the URL."""
    connection = config.attributes.get("connection")
    if connection is not None:
        _run_on(connection)
        return

    engine = create_engine(_database_url())
    try:
        with engine.connect() as connection:
            _run_on(connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
