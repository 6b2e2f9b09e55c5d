"""
Alembic Environment
───────────────────
- DATABASE_URL comes from facility_booking.config (environment or .env.example)
- facility_booking.models is imported so autogenerate sees every table
- SQLite databases are migrated in batch mode (copy-and-move ALTER TABLE)
"""

import os
import sys
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from alembic import context

# Repository root on sys.path so facility_booking imports when run from alembic/
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from facility_booking.config import settings
from facility_booking.database import Base
import facility_booking.models  # noqa: F401 (registers models on Base.metadata)

config = context.config
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

COMPARE_OPTIONS = {
    "target_metadata":        target_metadata,
    "compare_type":           True,
    "compare_server_default": True,
    "render_as_batch":        settings.is_sqlite,
}


# ─── Offline Mode ─────────────────────────────────────────────────────────────
def run_migrations_offline() -> None:
    """Emit the migration SQL without connecting (review the DDL before applying it)."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **COMPARE_OPTIONS,
    )

    with context.begin_transaction():
        context.run_migrations()


# ─── Online Mode ──────────────────────────────────────────────────────────────
def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, **COMPARE_OPTIONS)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
