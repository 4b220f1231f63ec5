"""LedgerStore: PostgreSQL implementation of LedgerStoreProtocol.

Balance mutation is a single conditional UPDATE ... RETURNING. A result of
0 rows means the account is missing or the debit would overdraw a limited
account; the recorder tells the two apart.

Transaction ownership: the CALLER (application service) commits. `savepoint`
wraps one record in a nested transaction so a duplicate-key insert rolls back
only its own balance update.
"""

import json
from contextlib import AbstractAsyncContextManager
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.errors import InternalError
from src.pm_wallet.domain.models import Account, LifetimeDelta, WalletTransaction
from src.pm_wallet.domain.repository import DuplicateTransactionError

REFERENCE_INDEX = "uq_wallet_tx_reference"

_ACCOUNT_COLUMNS = """
    user_id, balance, lifetime_purchased, lifetime_earned, lifetime_spent,
    has_unlimited_balance, created_at, updated_at
"""

_TX_COLUMNS = """
    id, user_id, transaction_type, amount, balance_after,
    reference_type, reference_id, description, metadata AS meta, created_at
"""

_GET_ACCOUNT_SQL = text(f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE user_id = :user_id")

_CREATE_ACCOUNT_SQL = text(f"""
    INSERT INTO accounts (user_id, balance, has_unlimited_balance)
    VALUES (:user_id, 0, :has_unlimited_balance)
    ON CONFLICT (user_id) DO NOTHING
    RETURNING {_ACCOUNT_COLUMNS}
""")

_APPLY_DELTA_SQL = text(f"""
    UPDATE accounts
    SET balance            = balance + :amount,
        lifetime_purchased = lifetime_purchased + :purchased,
        lifetime_earned    = lifetime_earned + :earned,
        lifetime_spent     = GREATEST(lifetime_spent + :spent - :refunded, 0),
        updated_at         = NOW()
    WHERE user_id = :user_id
      AND (has_unlimited_balance OR balance + :amount >= 0)
    RETURNING {_ACCOUNT_COLUMNS}
""")

_INSERT_TX_SQL = text(f"""
    INSERT INTO wallet_transactions
        (user_id, transaction_type, amount, balance_after,
         reference_type, reference_id, description, metadata)
    VALUES
        (:user_id, :transaction_type, :amount, :balance_after,
         :reference_type, :reference_id, :description, CAST(:metadata AS JSONB))
    RETURNING {_TX_COLUMNS}
""")

_FIND_TX_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM wallet_transactions
    WHERE user_id = :user_id
      AND transaction_type = :transaction_type
      AND reference_type = :reference_type
      AND reference_id = :reference_id
""")

_LIST_TX_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM wallet_transactions
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
      AND (CAST(:transaction_type AS VARCHAR) IS NULL OR transaction_type = :transaction_type)
    ORDER BY id DESC
    LIMIT :limit
""")

_BALANCE_MISMATCH_SQL = text("""
    SELECT a.user_id, a.balance, COALESCE(SUM(t.amount), 0) AS ledger_sum
    FROM accounts a
    LEFT JOIN wallet_transactions t ON t.user_id = a.user_id
    GROUP BY a.user_id, a.balance
    HAVING a.balance <> COALESCE(SUM(t.amount), 0)
""")


def _is_reference_conflict(exc: IntegrityError) -> bool:
    """True only for the idempotency index, not FK or CHECK violations."""
    # asyncpg keeps the violated constraint on the driver exception
    driver_exc = getattr(exc.orig, "__cause__", None)
    constraint = getattr(driver_exc, "constraint_name", None)
    if constraint is not None:
        return constraint == REFERENCE_INDEX
    return REFERENCE_INDEX in str(exc.orig)


def _load_metadata(raw: object) -> dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, str):
        return json.loads(raw)
    return dict(raw)  # type: ignore[call-overload]


def _row_to_account(row: object) -> Account:
    return Account(
        user_id=row.user_id,  # type: ignore[attr-defined]
        balance=row.balance,  # type: ignore[attr-defined]
        lifetime_purchased=row.lifetime_purchased,  # type: ignore[attr-defined]
        lifetime_earned=row.lifetime_earned,  # type: ignore[attr-defined]
        lifetime_spent=row.lifetime_spent,  # type: ignore[attr-defined]
        has_unlimited_balance=row.has_unlimited_balance,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_transaction(row: object) -> WalletTransaction:
    return WalletTransaction(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        transaction_type=row.transaction_type,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        balance_after=row.balance_after,  # type: ignore[attr-defined]
        reference_type=row.reference_type,  # type: ignore[attr-defined]
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        metadata=_load_metadata(row.meta),  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class LedgerStore:
    """Concrete store: all balance mutations atomic at the SQL level."""

    def savepoint(self, db: AsyncSession) -> AbstractAsyncContextManager[Any]:
        return db.begin_nested()

    async def get_account(self, db: AsyncSession, user_id: str) -> Account | None:
        row = (await db.execute(_GET_ACCOUNT_SQL, {"user_id": user_id})).fetchone()
        return _row_to_account(row) if row else None

    async def create_account(
        self, db: AsyncSession, user_id: str, has_unlimited_balance: bool
    ) -> Account | None:
        result = await db.execute(
            _CREATE_ACCOUNT_SQL,
            {"user_id": user_id, "has_unlimited_balance": has_unlimited_balance},
        )
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def apply_delta(
        self, db: AsyncSession, user_id: str, amount: int, lifetime: LifetimeDelta
    ) -> Account | None:
        result = await db.execute(
            _APPLY_DELTA_SQL,
            {
                "user_id": user_id,
                "amount": amount,
                "purchased": lifetime.purchased,
                "earned": lifetime.earned,
                "spent": lifetime.spent,
                "refunded": lifetime.refunded,
            },
        )
        row = result.fetchone()
        return _row_to_account(row) if row else None

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
        try:
            result = await db.execute(
                _INSERT_TX_SQL,
                {
                    "user_id": user_id,
                    "transaction_type": transaction_type,
                    "amount": amount,
                    "balance_after": balance_after,
                    "reference_type": reference_type,
                    "reference_id": reference_id,
                    "description": description,
                    "metadata": json.dumps(metadata),
                },
            )
        except IntegrityError as exc:
            if not _is_reference_conflict(exc):
                raise
            raise DuplicateTransactionError(str(exc.orig)) from exc
        row = result.fetchone()
        if row is None:
            raise InternalError("Transaction insert returned no rows: this should never happen")
        return _row_to_transaction(row)

    async def find_transaction(
        self,
        db: AsyncSession,
        user_id: str,
        transaction_type: str,
        reference_type: str,
        reference_id: str,
    ) -> WalletTransaction | None:
        result = await db.execute(
            _FIND_TX_SQL,
            {
                "user_id": user_id,
                "transaction_type": transaction_type,
                "reference_type": reference_type,
                "reference_id": reference_id,
            },
        )
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        transaction_type: str | None,
    ) -> list[WalletTransaction]:
        result = await db.execute(
            _LIST_TX_SQL,
            {
                "user_id": user_id,
                "cursor_id": cursor_id,
                "transaction_type": transaction_type,
                "limit": limit,
            },
        )
        return [_row_to_transaction(row) for row in result.fetchall()]

    async def find_balance_mismatches(
        self, db: AsyncSession
    ) -> list[tuple[str, int, int]]:
        rows = (await db.execute(_BALANCE_MISMATCH_SQL)).fetchall()
        return [(row.user_id, row.balance, int(row.ledger_sum)) for row in rows]
