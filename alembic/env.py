from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context
from prompt_builder.core.config import settings
from prompt_builder.db.session import Base
from prompt_builder.db import models  # noqa

config = context.config
# alembic.ini carries no logger sections; app logging is configured by prompt_builder.core.logging
if config.config_file_name:
    try:
        fileConfig(config.config_file_name)
    except (KeyError, ValueError):
        pass
target_metadata = Base.metadata


def _database_url() -> str:
    # `alembic -x db_url=...` overrides the configured database
    return context.get_x_argument(as_dictionary=True).get("db_url") or settings.database_url


def _configure_kwargs(url: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        # ALTER TABLE support on SQLite goes through batch mode
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline():
    url = _database_url()
    context.configure(url=url, literal_binds=True, **_configure_kwargs(url))
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    url = _database_url()
    connectable = engine_from_config({"sqlalchemy.url": url}, prefix="sqlalchemy.", poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs(url))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
