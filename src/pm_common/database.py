"""Async engine, per-request sessions and the unit-of-work commit helper.

Components never open their own session: routers receive one from
``get_db_session`` and application services decide its fate with
``commit_result`` once the domain call has produced a Result.
"""

import logging
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings
from src.pm_common.errors import InternalError
from src.pm_common.result import Result

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by every ledger table mapping."""


engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_pre_ping=True,
)

session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


async def commit_result(db: AsyncSession, result: Result[Any]) -> Result[Any]:
    """Commit when the operation succeeded, roll back otherwise.

    A failing COMMIT is itself folded into the Result so callers keep a
    single error path.
    """
    try:
        if result.success:
            await db.commit()
        else:
            await db.rollback()
    except SQLAlchemyError:
        logger.exception("Commit failed")
        await db.rollback()
        return Result.fail(InternalError("Commit failed"))
    return result
