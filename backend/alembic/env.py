import os
from logging.config import fileConfig
from sqlalchemy import create_engine
from alembic import context

from config import get_settings

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Same file the app opens; relative paths resolve against the backend directory,
# which is where init_db runs alembic from
database_path = get_settings().database_path
if not os.path.isabs(database_path):
    backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    database_path = os.path.join(backend_dir, database_path)
db_url = f"sqlite:///{database_path}"


def run_migrations_offline() -> None:
    """Emit SQL for the todo/reminder schema without a connection."""
    context.configure(
        url=db_url,
        target_metadata=None,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations to the SQLite todo database."""
    engine = create_engine(db_url)

    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=None,
            render_as_batch=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
