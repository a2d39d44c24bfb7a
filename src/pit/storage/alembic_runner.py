"""Utilities to run Alembic migrations programmatically."""

from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine
from sqlalchemy.pool import NullPool

from pit.storage.common import sqlite_url

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


def alembic_config(db_path: Path) -> Config:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    config.set_main_option("sqlalchemy.url", sqlite_url(db_path))
    return config


def upgrade_head(db_path: Path) -> str:
    """Apply Alembic migrations up to head for the given SQLite database.

    Returns the head revision. Raises ``RuntimeError`` if the database does
    not report the head revision afterwards, so callers never run against a
    schema that stopped part-way.
    """

    config = alembic_config(db_path)
    command.upgrade(config, "head")

    head = ScriptDirectory.from_config(config).get_current_head()
    current = current_revision(db_path)
    if head is None or current != head:
        raise RuntimeError(
            f"Schema of {db_path} is at revision {current!r}, expected {head!r}.",
        )
    return head


def current_revision(db_path: Path) -> str | None:
    engine = create_engine(sqlite_url(db_path), poolclass=NullPool)
    try:
        with engine.connect() as connection:
            return MigrationContext.configure(connection).get_current_revision()
    finally:
        engine.dispose()
