"""
============================================================
TARJETA CRC (Class / Responsibilities / Collaborators)
============================================================
Class: alembic/env.py (Alembic Environment Configuration)

Responsibilities:
  - Definir el runtime de Alembic para migraciones (online/offline).
  - Proveer la URL de conexión a partir de DATABASE_URL.

Collaborators:
  - Alembic (context, config)
  - SQLAlchemy Engine (engine_from_config)
  - PostgreSQL (driver psycopg)

Policy:
  - No hay ORM: las migraciones son manuales (op.*) y autogenerate
    queda deshabilitado (target_metadata = None).
============================================================
"""

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import Connection

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = None


def _sqlalchemy_url(raw_url: str) -> str:
    if raw_url.startswith("postgresql://"):
        return raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql+psycopg://", 1)
    return raw_url


def get_url() -> str:
    url = os.environ.get("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    return _sqlalchemy_url(url or "")


def _configure_context(connection: Connection | None = None) -> None:
    common_kwargs = dict(
        target_metadata=target_metadata,
        include_schemas=False,
        version_table="alembic_version",
    )

    if connection is None:
        context.configure(
            url=get_url(),
            literal_binds=True,
            dialect_opts={"paramstyle": "named"},
            **common_kwargs,
        )
    else:
        context.configure(connection=connection, **common_kwargs)


def run_migrations_offline() -> None:
    _configure_context(connection=None)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = get_url()

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        _configure_context(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
