# apps/backend/ltconnect/storage/migrations/env.py
from __future__ import annotations
from logging.config import fileConfig
from pathlib import Path
from typing import Any, Dict, cast
import os

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine.url import make_url

from ltconnect.configs.settings import get_settings
from ltconnect.storage.db import Base
import ltconnect.storage.models  # noqa: F401  # populate Base.metadata (documents table)

config = context.config
settings = get_settings()

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# .../apps/backend/ltconnect/storage/migrations/env.py -> .../apps/backend
BACKEND_ROOT = Path(__file__).resolve().parents[3]


def _absolute_sqlite_url(url_str: str) -> str:
    """Relative sqlite paths resolve under apps/backend; the directory is created."""
    url = make_url(url_str)
    if url.drivername.split("+", 1)[0] != "sqlite" or not url.database or url.database == ":memory:":
        return url_str

    db_path = Path(url.database)
    if not db_path.is_absolute():
        db_path = (BACKEND_ROOT / db_path).resolve()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return url.set(database=str(db_path)).render_as_string(hide_password=False)


def _db_url() -> str:
    """DATABASE_URL env > settings > alembic.ini."""
    url = (
        os.getenv("DATABASE_URL")
        or settings.DATABASE_URL
        or config.get_main_option("sqlalchemy.url")
    )
    if not url:
        raise RuntimeError("No database URL configured. Set DATABASE_URL or sqlalchemy.url in alembic.ini.")
    return _absolute_sqlite_url(str(url))


def run_migrations_offline():
    url = _db_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    config.set_main_option("sqlalchemy.url", _db_url())
    section = cast(Dict[str, Any], config.get_section(config.config_ini_section) or {})
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=(connection.dialect.name == "sqlite"),
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
