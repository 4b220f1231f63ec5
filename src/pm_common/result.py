"""Discriminated operation result returned across the ledger boundary.

Ledger-affecting operations never raise to their callers. They return a
Result carrying either a value or a typed AppError; HTTP handlers turn the
error into a status code via the AppError exception handler.
"""

import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Generic, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from src.pm_common.errors import AppError, InternalError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    value: T | None = None
    error: AppError | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, error: AppError) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value or re-raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


async def capture(operation: Awaitable[T]) -> Result[T]:
    """Await a raising domain operation and fold its outcome into a Result."""
    try:
        return Result.ok(await operation)
    except AppError as exc:
        return Result.fail(exc)
    except SQLAlchemyError as exc:
        logger.exception("Storage failure in ledger operation")
        return Result.fail(InternalError(f"Storage failure: {exc.__class__.__name__}"))
