"""Alembic environment for the FOS dashboard schema."""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from fos_dashboard.core.config import settings
from fos_dashboard.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# The runtime passes a pymysql URL; fall back to the configured one for the CLI
if not config.get_main_option("sqlalchemy.url"):
    config.set_main_option(
        "sqlalchemy.url", settings.database_url.replace("+aiomysql", "+pymysql")
    )

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
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
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
