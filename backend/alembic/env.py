import os, sys
from pathlib import Path
from alembic import context
from sqlalchemy import create_engine, pool

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))

from emulator.config import load_settings  # loads emulator/.env
from emulator.models import Base

config = context.config
target_metadata = Base.metadata

# Separate version table; autogenerate only compares tables from emulator.models.
VERSION_TABLE = "emulator_alembic_version"


def get_url() -> str:
    url = os.getenv("ALEMBIC_DATABASE_URL") or load_settings().database_url
    if not url:
        url = config.get_main_option("sqlalchemy.url", "")
    # Migrations run synchronously; swap the async driver for psycopg.
    return url.replace("+asyncpg", "+psycopg")


def include_object(obj, name, type_, reflected, compare_to):
    if type_ == "table":
        return name in target_metadata.tables
    return True


def _configure(**kwargs):
    context.configure(
        target_metadata=target_metadata,
        version_table=VERSION_TABLE,
        include_object=include_object,
        compare_type=True,
        compare_server_default=True,
        **kwargs,
    )


def run_migrations_offline():
    _configure(url=get_url(), literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = create_engine(get_url(), poolclass=pool.NullPool)
    with connectable.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
