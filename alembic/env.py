from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from db.base import Base
from db.config import load_env_files, normalize_postgres_url, resolve_database_url
from db.models import Product  # noqa: F401  registers the products table on Base.metadata

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _migration_url() -> str:
    """
    Pick the database the migration runs against.

    ``-x db_url=...`` wins, then ALEMBIC_DATABASE_URL, then the regular
    application resolution (DATABASE_URL, CLOUD_DATABASE_URL, LOCAL_DATABASE_URL).
    """

    load_env_files()

    override = context.get_x_argument(as_dictionary=True).get("db_url")
    candidate = override or os.getenv("ALEMBIC_DATABASE_URL")
    url = normalize_postgres_url(candidate) if candidate else resolve_database_url()

    if not url.startswith("postgresql"):
        raise RuntimeError("The products schema uses JSONB and requires a PostgreSQL URL.")
    return url


def run_migrations_offline() -> None:
    context.configure(
        url=_migration_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = _migration_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
