"""Alembic environment for the leads, messages, and outreach_log tables.

The database URL is taken from ``DATABASE_URL``, then ``sqlalchemy.url`` in
the Alembic config, then application settings. Async driver names are
rewritten to psycopg2 the same way the runtime repository does.
"""

from __future__ import annotations

import logging
import os
from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import Connection
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import ArgumentError
from sqlmodel import SQLModel

from app.config import settings
from app.models import records  # noqa: F401 - registers table metadata
from app.services.leads.repositories import coerce_sync_database_url

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("leaddesk.alembic")
target_metadata = SQLModel.metadata


def _url_candidates() -> list[tuple[str, str | None]]:
    return [
        ("DATABASE_URL", os.environ.get("DATABASE_URL")),
        ("alembic config", config.get_main_option("sqlalchemy.url")),
        ("app settings", settings.database_url),
    ]


def resolve_database() -> tuple[str, dict[str, Any]]:
    for source, raw in _url_candidates():
        if not raw:
            continue
        try:
            url, connect_args, _ = coerce_sync_database_url(make_url(raw))
        except ArgumentError as exc:
            raise RuntimeError(f"Invalid database URL from {source}.") from exc
        if os.environ.get("PGSSLMODE", "").lower() == "require" and url.startswith("postgresql"):
            connect_args.setdefault("sslmode", "require")
        rendered = make_url(url).render_as_string(hide_password=True)
        logger.info("Alembic database URL from %s: %s", source, rendered)
        return url, connect_args
    raise RuntimeError("DATABASE_URL must be set to run migrations.")


def run_migrations_offline() -> None:
    url, _ = resolve_database()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url, connect_args = resolve_database()
    section = dict(config.get_section(config.config_ini_section) or {})
    section["sqlalchemy.url"] = url
    engine = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool, connect_args=connect_args)
    try:
        with engine.connect() as connection:
            _migrate(connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
