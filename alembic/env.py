"""Alembic environment for the AP Coins ledger.

Migrations are hand-written raw SQL (op.execute). The ORM mappings are
loaded into target_metadata only so `alembic check` can report drift between
them and the migrated schema; nothing is autogenerated.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from config.settings import settings
from src.pm_common.database import Base
from src.pm_rewards.infrastructure import db_models as _rewards_models  # noqa: F401
from src.pm_scenario.infrastructure import db_models as _scenario_models  # noqa: F401
from src.pm_shop.infrastructure import db_models as _shop_models  # noqa: F401
from src.pm_wallet.infrastructure import db_models as _wallet_models  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _include_object(obj, name, type_, reflected, compare_to):  # type: ignore[no-untyped-def]
    # Indexes, triggers and CHECK constraints live only in the raw SQL
    return type_ in ("table", "column")


def run_migrations_offline() -> None:
    """Emit SQL to stdout without a live database."""
    context.configure(
        url=settings.DATABASE_URL,
        target_metadata=target_metadata,
        include_object=_include_object,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        include_object=_include_object,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = create_async_engine(settings.DATABASE_URL)
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
