"""Alembic environment configuration; migrations run over a sync psycopg2 engine."""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool

from queue_dispatch.adapters.persistence.database import Base
from queue_dispatch.adapters.persistence.models import (  # noqa: F401  ensure models are registered
    CustomerModel,
    NotificationDeliveryModel,
    NotificationRuleModel,
    PaymentModel,
    RoundRobinStateModel,
    ScheduledNotificationModel,
    StaffModel,
    TicketModel,
    TicketServiceModel,
)
from queue_dispatch.config import settings

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# Override sqlalchemy.url from settings (so .env is the source of truth)
# Offline mode renders SQL from the configured URL as-is
config.set_main_option("sqlalchemy.url", settings.database_url)


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (generate SQL without connecting)."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations online using sync engine (alembic doesn't support async natively)."""
    db_url = settings.database_url.replace("+asyncpg", "+psycopg2")
    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = db_url

    from sqlalchemy import engine_from_config

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        do_run_migrations(connection)

    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
