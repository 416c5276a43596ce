import os
from logging.config import fileConfig

from sqlalchemy import create_engine
from sqlalchemy import pool

from alembic import context

# Import models so autogenerate sees every table
from flashquest.db.base import Base, DATABASE_URL
from flashquest.auth.models import User, Subject, UserSubject  # noqa: F401
from flashquest.flashcards.models import Flashcard, SavedFlashcard  # noqa: F401
from flashquest.progress.models import UserProgress  # noqa: F401

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Metadata the migrations compare against
target_metadata = Base.metadata


def get_url() -> str:
    """
    Single source of truth for Alembic DB URL.

    Prefer DATABASE_URL env var (used by flashquest.db.base) and fall back
    to that module's DATABASE_URL constant.
    """
    url = os.getenv("DATABASE_URL", DATABASE_URL)
    return url


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = get_url()
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
    connectable = create_engine(get_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
