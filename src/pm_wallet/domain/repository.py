"""LedgerStore Protocol: dependency inversion for testability.

Unit tests inject an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the PostgreSQL implementation.
"""

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_wallet.domain.models import Account, LifetimeDelta, WalletTransaction


class DuplicateTransactionError(Exception):
    """A referenced transaction with the same idempotency key already exists."""


class LedgerStoreProtocol(Protocol):
    def savepoint(self, db: AsyncSession) -> AbstractAsyncContextManager[Any]:
        """Unit of work: everything inside commits or rolls back together."""
        ...

    async def get_account(self, db: AsyncSession, user_id: str) -> Account | None: ...

    async def create_account(
        self, db: AsyncSession, user_id: str, has_unlimited_balance: bool
    ) -> Account | None:
        """Insert a zero-balance account. Returns None if it already exists."""
        ...

    async def apply_delta(
        self, db: AsyncSession, user_id: str, amount: int, lifetime: LifetimeDelta
    ) -> Account | None:
        """Atomic conditional balance update.

        Returns None when no row matched: the account is missing, or the debit
        would take a limited account below zero.
        """
        ...

    async def insert_transaction(
        self,
        db: AsyncSession,
        user_id: str,
        transaction_type: str,
        amount: int,
        balance_after: int,
        reference_type: str | None,
        reference_id: str | None,
        description: str | None,
        metadata: dict[str, Any],
    ) -> WalletTransaction:
        """Append one ledger row. Raises DuplicateTransactionError on key clash."""
        ...

    async def find_transaction(
        self,
        db: AsyncSession,
        user_id: str,
        transaction_type: str,
        reference_type: str,
        reference_id: str,
    ) -> WalletTransaction | None: ...

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        transaction_type: str | None,
    ) -> list[WalletTransaction]: ...

    async def find_balance_mismatches(
        self, db: AsyncSession
    ) -> list[tuple[str, int, int]]:
        """(user_id, balance, ledger_sum) for every account whose balance != Σ amount."""
        ...
