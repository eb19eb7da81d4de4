"""
Alembic environment configuration

The database URL always comes from settings (DATABASE_URL), never from
alembic.ini, so migrations and the app share one source of truth.
"""
from logging.config import fileConfig
from sqlalchemy import engine_from_config
from sqlalchemy import pool
from alembic import context
import logging
import os
import sys

# Add backend/ to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from app.core.database import Base  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.models.user import User  # noqa: E402,F401
from app.models.vaccination import *  # noqa: E402,F401,F403

# this is the Alembic Config object
config = context.config

config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    try:
        connectable = engine_from_config(
            config.get_section(config.config_ini_section, {}),
            prefix="sqlalchemy.",
            poolclass=pool.NullPool,
        )

        with connectable.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                render_as_batch=connection.dialect.name == "sqlite",
            )

            with context.begin_transaction():
                context.run_migrations()
    except Exception as e:
        error_msg = str(e)
        if "could not translate host name" in error_msg or "nodename nor servname provided" in error_msg:
            db_url = config.get_main_option("sqlalchemy.url")
            hostname = db_url.split("@")[1].split(":")[0] if "@" in db_url else "unknown"
            logger.error(
                f"Cannot resolve database hostname '{hostname}'. Check DATABASE_URL in your .env file "
                f"or run 'alembic upgrade head --sql' to generate SQL without connecting."
            )
        raise


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
