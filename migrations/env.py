"""Alembic migration environment for the gst_compliance schema.

DATABASE_URL (the app's asyncpg URL) wins over alembic.ini; the driver
suffix is stripped so Alembic runs on plain psycopg2:
    postgresql+asyncpg://...  →  postgresql://...

Supports `alembic upgrade head --sql` (offline) for DBA review.
"""
import os
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from alembic import context

from compliance_risk.models.client_risk import SCHEMA, Base
import compliance_risk.models.job_log  # noqa: F401
import compliance_risk.models.compliance_rule  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

db_url = os.environ.get("DATABASE_URL")
if db_url:
    for driver in ("+asyncpg", "+psycopg2"):
        db_url = db_url.replace(f"postgresql{driver}://", "postgresql://")
    config.set_main_option("sqlalchemy.url", db_url)

target_metadata = Base.metadata


def include_object(obj, name, type_, reflected, compare_to):
    # Autogenerate only looks at our schema, never at other services' tables
    if type_ == "table":
        return obj.schema == SCHEMA
    return True


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        include_schemas=True,
        include_object=include_object,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_schemas=True,
            include_object=include_object,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
