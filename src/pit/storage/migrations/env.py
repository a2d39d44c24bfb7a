"""Alembic environment for the pit task store."""

from __future__ import annotations

import sqlite3

from alembic import context
from sqlalchemy import create_engine, event
from sqlalchemy.pool import NullPool

config = context.config


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(config.get_main_option("sqlalchemy.url"), poolclass=NullPool)
    # pysqlite commits implicitly around DDL; emit BEGIN ourselves so every
    # revision and its alembic_version bump land in one transaction.
    event.listen(engine, "connect", _disable_driver_transactions)
    event.listen(engine, "begin", lambda connection: connection.exec_driver_sql("BEGIN"))
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                transactional_ddl=True,
                transaction_per_migration=True,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


def _disable_driver_transactions(dbapi_connection: sqlite3.Connection, _: object) -> None:
    dbapi_connection.isolation_level = None


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
