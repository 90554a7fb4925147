"""Alembic environment for the Insight schema.

The migration URL is DATABASE_URL_MIGRATIONS when set (a role allowed to
run DDL), otherwise the app's own URL from insight_api.config.env. SQLite
runs in batch mode because it cannot ALTER most constraints in place.
"""

import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "apps" / "api"))

from insight_api.config.env import get_database_url  # noqa: E402
from insight_api.db.engine import build_engine  # noqa: E402
from insight_api.db.models import Base  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _migration_url() -> str:
    return (
        os.getenv("DATABASE_URL_MIGRATIONS")
        or config.get_main_option("sqlalchemy.url")
        or get_database_url()
    )


def _configure_kwargs(url: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit the migration SQL without a connection."""
    url = _migration_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = _migration_url()
    engine = build_engine(url)
    try:
        with engine.connect() as connection:
            context.configure(connection=connection, **_configure_kwargs(url))
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
