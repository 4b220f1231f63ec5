"""TransactionRecorder: the only code path that mutates a balance.

Every coin movement (stakes, payouts, purchases, refunds, rewards, steals)
goes through `record` / `apply`:

1. Reject zero amounts.
2. If an idempotency key (reference_type, reference_id) is supplied and a
   transaction with the same key and type already exists for the account,
   return it untouched.
3. Inside a savepoint, apply one conditional balance update and append one
   ledger row. A concurrent duplicate that trips the unique index rolls the
   savepoint back and the winner's row is returned instead.

The unlimited-balance capability is honoured only by the store's conditional
update; callers never special-case it.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.coins import validate_amount
from src.pm_common.enums import TransactionType
from src.pm_common.errors import (
    AccountNotFoundError,
    AppError,
    InsufficientFundsError,
    InternalError,
    InvalidAmountError,
    ValidationError,
)
from src.pm_common.result import Result, capture
from src.pm_wallet.domain.models import Account, LifetimeDelta, RecordOutcome
from src.pm_wallet.domain.repository import DuplicateTransactionError, LedgerStoreProtocol

logger = logging.getLogger(__name__)


def lifetime_delta(transaction_type: str, amount: int) -> LifetimeDelta:
    """Which lifetime counter a signed amount feeds."""
    if amount < 0:
        return LifetimeDelta(spent=-amount)
    if transaction_type == TransactionType.PURCHASE:
        return LifetimeDelta(purchased=amount)
    if transaction_type == TransactionType.REFUND:
        return LifetimeDelta(refunded=amount)
    return LifetimeDelta(earned=amount)


class TransactionRecorder:
    def __init__(self, store: LedgerStoreProtocol) -> None:
        self._store = store

    async def record(
        self,
        db: AsyncSession,
        user_id: str,
        transaction_type: TransactionType | str,
        amount: int,
        description: str | None = None,
        reference_type: str | None = None,
        reference_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Result[RecordOutcome]:
        """Record one transaction; never raises, returns a Result."""
        return await capture(
            self.apply(
                db,
                user_id,
                transaction_type,
                amount,
                description,
                reference_type,
                reference_id,
                metadata,
            )
        )

    async def apply(
        self,
        db: AsyncSession,
        user_id: str,
        transaction_type: TransactionType | str,
        amount: int,
        description: str | None = None,
        reference_type: str | None = None,
        reference_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> RecordOutcome:
        """Raising variant of `record` for callers composing several entries."""
        try:
            validate_amount(amount)
        except ValueError as exc:
            raise InvalidAmountError(str(exc)) from None

        try:
            tx_type = TransactionType(transaction_type).value
        except ValueError:
            raise ValidationError(f"Unknown transaction type: {transaction_type}") from None
        keyed = reference_type is not None and reference_id is not None

        if keyed:
            existing = await self._store.find_transaction(
                db, user_id, tx_type, reference_type, reference_id  # type: ignore[arg-type]
            )
            if existing is not None:
                logger.info(
                    "Transaction idempotency hit: user=%s type=%s ref=%s/%s",
                    user_id, tx_type, reference_type, reference_id,
                )
                return RecordOutcome(existing.balance_after, existing, idempotent_hit=True)

        try:
            async with self._store.savepoint(db):
                account = await self._store.apply_delta(
                    db, user_id, amount, lifetime_delta(tx_type, amount)
                )
                if account is None:
                    raise await self._rejection(db, user_id, amount)
                entry = await self._store.insert_transaction(
                    db,
                    user_id=user_id,
                    transaction_type=tx_type,
                    amount=amount,
                    balance_after=account.balance,
                    reference_type=reference_type,
                    reference_id=reference_id,
                    description=description,
                    metadata=metadata or {},
                )
        except DuplicateTransactionError:
            if not keyed:
                raise InternalError("Unkeyed transaction reported as duplicate") from None
            existing = await self._store.find_transaction(
                db, user_id, tx_type, reference_type, reference_id  # type: ignore[arg-type]
            )
            if existing is None:
                raise InternalError("Duplicate transaction vanished after rollback") from None
            logger.info(
                "Transaction race lost, returning winner: user=%s ref=%s/%s",
                user_id, reference_type, reference_id,
            )
            return RecordOutcome(existing.balance_after, existing, idempotent_hit=True)

        logger.debug(
            "Recorded %s %+d for user=%s balance_after=%d",
            tx_type, amount, user_id, entry.balance_after,
        )
        return RecordOutcome(account.balance, entry)

    async def get_account(self, db: AsyncSession, user_id: str) -> Account | None:
        """Read-only account lookup for callers that need the unlimited flag."""
        return await self._store.get_account(db, user_id)

    async def _rejection(self, db: AsyncSession, user_id: str, amount: int) -> AppError:
        account = await self._store.get_account(db, user_id)
        if account is None:
            return AccountNotFoundError(user_id)
        logger.info(
            "Debit rejected: user=%s required=%d available=%d",
            user_id, -amount, account.balance,
        )
        return InsufficientFundsError(required=-amount, available=account.balance)
