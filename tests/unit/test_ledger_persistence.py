"""Unit tests for LedgerStore using MagicMock AsyncSession."""

import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from src.pm_wallet.domain.models import LifetimeDelta
from src.pm_wallet.domain.repository import DuplicateTransactionError
from src.pm_wallet.infrastructure.persistence import LedgerStore


def _account_row(**kwargs):  # type: ignore[no-untyped-def]
    row = MagicMock()
    row.user_id = kwargs.get("user_id", "u1")
    row.balance = kwargs.get("balance", 1000)
    row.lifetime_purchased = 0
    row.lifetime_earned = 1000
    row.lifetime_spent = 0
    row.has_unlimited_balance = kwargs.get("has_unlimited_balance", False)
    row.created_at = datetime.now(UTC)
    row.updated_at = datetime.now(UTC)
    return row


def _tx_row(**kwargs):  # type: ignore[no-untyped-def]
    row = MagicMock()
    row.id = kwargs.get("id", 7)
    row.user_id = "u1"
    row.transaction_type = kwargs.get("transaction_type", "BONUS")
    row.amount = kwargs.get("amount", 100)
    row.balance_after = kwargs.get("balance_after", 1100)
    row.reference_type = kwargs.get("reference_type")
    row.reference_id = kwargs.get("reference_id")
    row.description = None
    row.meta = kwargs.get("meta", {})
    row.created_at = datetime.now(UTC)
    return row


@pytest.fixture
def db():
    return MagicMock()


def _returning(db, row) -> None:  # type: ignore[no-untyped-def]
    result = MagicMock()
    result.fetchone.return_value = row
    db.execute = AsyncMock(return_value=result)


class TestApplyDelta:
    async def test_maps_returned_row(self, db) -> None:
        _returning(db, _account_row(balance=900))
        account = await LedgerStore().apply_delta(db, "u1", -100, LifetimeDelta(spent=100))

        assert account is not None
        assert account.balance == 900
        params = db.execute.call_args[0][1]
        assert params == {
            "user_id": "u1", "amount": -100,
            "purchased": 0, "earned": 0, "spent": 100, "refunded": 0,
        }

    async def test_sql_is_conditional(self, db) -> None:
        _returning(db, None)
        account = await LedgerStore().apply_delta(db, "u1", -100, LifetimeDelta(spent=100))

        assert account is None
        sql = str(db.execute.call_args[0][0])
        assert "has_unlimited_balance OR balance + :amount >= 0" in sql
        assert "RETURNING" in sql


class TestInsertTransaction:
    async def test_serialises_metadata(self, db) -> None:
        _returning(db, _tx_row(meta='{"k": 1}'))
        entry = await LedgerStore().insert_transaction(
            db, "u1", "BONUS", 100, 1100, None, None, None, {"k": 1}
        )

        assert entry.metadata == {"k": 1}
        assert json.loads(db.execute.call_args[0][1]["metadata"]) == {"k": 1}

    async def test_reference_index_violation_is_duplicate(self, db) -> None:
        orig = Exception('duplicate key value violates unique constraint "uq_wallet_tx_reference"')
        db.execute = AsyncMock(side_effect=IntegrityError("INSERT", {}, orig))
        with pytest.raises(DuplicateTransactionError):
            await LedgerStore().insert_transaction(
                db, "u1", "BONUS", 100, 1100, "reward", "m1", None, {}
            )

    async def test_driver_constraint_name_is_checked(self, db) -> None:
        driver = Exception("unique violation")
        driver.constraint_name = "uq_wallet_tx_reference"  # type: ignore[attr-defined]
        orig = Exception("wrapped")
        orig.__cause__ = driver
        db.execute = AsyncMock(side_effect=IntegrityError("INSERT", {}, orig))
        with pytest.raises(DuplicateTransactionError):
            await LedgerStore().insert_transaction(
                db, "u1", "BONUS", 100, 1100, "reward", "m1", None, {}
            )

    async def test_other_integrity_errors_propagate(self, db) -> None:
        orig = Exception('insert violates check constraint "ck_wallet_tx_amount_nonzero"')
        db.execute = AsyncMock(side_effect=IntegrityError("INSERT", {}, orig))
        with pytest.raises(IntegrityError):
            await LedgerStore().insert_transaction(
                db, "u1", "BONUS", 100, 1100, "reward", "m1", None, {}
            )


class TestReads:
    async def test_get_account_missing(self, db) -> None:
        _returning(db, None)
        assert await LedgerStore().get_account(db, "ghost") is None

    async def test_create_account_conflict_returns_none(self, db) -> None:
        _returning(db, None)
        assert await LedgerStore().create_account(db, "u1", False) is None
        assert "ON CONFLICT (user_id) DO NOTHING" in str(db.execute.call_args[0][0])

    async def test_list_transactions(self, db) -> None:
        result = MagicMock()
        result.fetchall.return_value = [_tx_row(id=3), _tx_row(id=2)]
        db.execute = AsyncMock(return_value=result)

        entries = await LedgerStore().list_transactions(db, "u1", None, 21, "BONUS")

        assert [e.id for e in entries] == [3, 2]
        assert db.execute.call_args[0][1]["transaction_type"] == "BONUS"

    async def test_balance_mismatches(self, db) -> None:
        row = MagicMock(user_id="u1", balance=500, ledger_sum=450)
        result = MagicMock()
        result.fetchall.return_value = [row]
        db.execute = AsyncMock(return_value=result)

        assert await LedgerStore().find_balance_mismatches(db) == [("u1", 500, 450)]

    def test_savepoint_uses_nested_transaction(self, db) -> None:
        LedgerStore().savepoint(db)
        db.begin_nested.assert_called_once()
