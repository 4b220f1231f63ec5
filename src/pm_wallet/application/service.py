"""WalletApplicationService: thin composition layer over the recorder.

Mutating operations commit on success and roll back on failure; the result
handed back is always a Result, never an exception. Reads run without an
explicit transaction.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_common.coins import coins_to_display
from src.pm_common.enums import ReferenceType, TransactionType
from src.pm_common.database import commit_result
from src.pm_common.errors import AccountExistsError, AccountNotFoundError
from src.pm_common.result import Result
from src.pm_wallet.application.schemas import (
    LedgerAuditResponse,
    RecordTransactionResponse,
    TransactionItem,
    TransactionListResponse,
    WalletStatsResponse,
    cursor_decode,
    cursor_encode,
)
from src.pm_wallet.domain.models import Account
from src.pm_wallet.domain.recorder import TransactionRecorder
from src.pm_wallet.domain.repository import LedgerStoreProtocol
from src.pm_wallet.infrastructure.persistence import LedgerStore

logger = logging.getLogger(__name__)


def _stats(account: Account) -> WalletStatsResponse:
    return WalletStatsResponse.from_account(
        user_id=account.user_id,
        balance=account.balance,
        lifetime_purchased=account.lifetime_purchased,
        lifetime_earned=account.lifetime_earned,
        lifetime_spent=account.lifetime_spent,
        has_unlimited_balance=account.has_unlimited_balance,
    )


class WalletApplicationService:
    def __init__(self, store: LedgerStoreProtocol | None = None) -> None:
        self._store: LedgerStoreProtocol = store or LedgerStore()
        self._recorder = TransactionRecorder(self._store)

    async def get_wallet_stats(
        self, db: AsyncSession, user_id: str
    ) -> Result[WalletStatsResponse]:
        account = await self._store.get_account(db, user_id)
        if account is None:
            return Result.fail(AccountNotFoundError(user_id))
        return Result.ok(_stats(account))

    async def open_account(
        self, db: AsyncSession, user_id: str, has_unlimited_balance: bool = False
    ) -> Result[WalletStatsResponse]:
        """Create the account and credit the welcome bonus in one transaction."""
        account = await self._store.create_account(db, user_id, has_unlimited_balance)
        if account is None:
            return await commit_result(db, Result.fail(AccountExistsError(user_id)))
        if settings.WELCOME_BONUS_COINS > 0:
            outcome = await self._recorder.record(
                db,
                user_id,
                TransactionType.BONUS,
                settings.WELCOME_BONUS_COINS,
                description="Welcome bonus",
                reference_type=ReferenceType.ACCOUNT.value,
                reference_id=user_id,
            )
            if not outcome.success:
                return await commit_result(db, Result.fail(outcome.error))  # type: ignore[arg-type]
            account.balance = outcome.value.new_balance  # type: ignore[union-attr]
            account.lifetime_earned += settings.WELCOME_BONUS_COINS
        logger.info("Opened account user=%s unlimited=%s", user_id, has_unlimited_balance)
        return await commit_result(db, Result.ok(_stats(account)))

    async def record_transaction(
        self,
        db: AsyncSession,
        user_id: str,
        transaction_type: TransactionType,
        amount: int,
        description: str | None = None,
        reference_type: str | None = None,
        reference_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Result[RecordTransactionResponse]:
        outcome = await self._recorder.record(
            db,
            user_id,
            transaction_type,
            amount,
            description,
            reference_type,
            reference_id,
            metadata,
        )
        if not outcome.success:
            return await commit_result(db, Result.fail(outcome.error))  # type: ignore[arg-type]
        value = outcome.value
        assert value is not None
        return await commit_result(
            db,
            Result.ok(
                RecordTransactionResponse(
                    transaction_id=value.transaction.id,
                    new_balance=value.new_balance,
                    new_balance_display=coins_to_display(value.new_balance),
                    idempotent_hit=value.idempotent_hit,
                )
            ),
        )

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
        transaction_type: str | None,
    ) -> TransactionListResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._store.list_transactions(
            db, user_id, cursor_id, limit + 1, transaction_type
        )
        has_more = len(entries) > limit
        page = entries[:limit]

        items = [
            TransactionItem(
                id=e.id,
                transaction_type=e.transaction_type,
                amount=e.amount,
                amount_display=coins_to_display(e.amount),
                balance_after=e.balance_after,
                reference_type=e.reference_type,
                reference_id=e.reference_id,
                description=e.description,
                metadata=e.metadata,
                created_at=e.created_at.isoformat() if e.created_at else "",
            )
            for e in page
        ]

        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return TransactionListResponse(items=items, next_cursor=next_cursor, has_more=has_more)

    async def audit_ledger(self, db: AsyncSession) -> LedgerAuditResponse:
        """Check balance conservation: balance == Σ(transactions.amount) for every account."""
        violations: list[str] = []
        for user_id, balance, ledger_sum in await self._store.find_balance_mismatches(db):
            msg = f"Balance drift for user {user_id}: balance={balance} != ledger_sum={ledger_sum}"
            violations.append(msg)
            logger.error(msg)
        return LedgerAuditResponse(ok=not violations, violations=violations)
