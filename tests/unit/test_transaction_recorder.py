"""Tests for TransactionRecorder against the in-memory LedgerStore."""

import pytest

from src.pm_common.enums import TransactionType
from src.pm_common.errors import (
    AccountNotFoundError,
    InsufficientFundsError,
    InternalError,
    InvalidAmountError,
    ValidationError,
)
from src.pm_wallet.domain.recorder import TransactionRecorder, lifetime_delta
from src.pm_wallet.domain.repository import DuplicateTransactionError


class TestLifetimeDelta:
    def test_debit_counts_as_spent(self) -> None:
        assert lifetime_delta("ITEM_PURCHASE", -40).spent == 40

    def test_purchase_credit(self) -> None:
        assert lifetime_delta("PURCHASE", 500).purchased == 500

    def test_refund_reduces_spent(self) -> None:
        assert lifetime_delta("REFUND", 40).refunded == 40

    def test_other_credit_is_earned(self) -> None:
        assert lifetime_delta("SCENARIO_PAYOUT", 2000).earned == 2000


class TestRecord:
    async def test_credit_updates_balance_and_ledger(self, db, ledger, recorder) -> None:
        ledger.open("u1", 100)
        result = await recorder.record(db, "u1", TransactionType.BONUS, 50, "gift")

        assert result.success
        assert result.value.new_balance == 150
        assert result.value.transaction.balance_after == 150
        assert ledger.balance("u1") == ledger.ledger_sum("u1") == 150

    async def test_zero_amount_rejected(self, db, ledger, recorder) -> None:
        ledger.open("u1", 100)
        result = await recorder.record(db, "u1", "BONUS", 0)
        assert isinstance(result.error, InvalidAmountError)
        assert len(ledger.transactions) == 1

    async def test_unknown_type_rejected(self, db, ledger, recorder) -> None:
        ledger.open("u1", 100)
        result = await recorder.record(db, "u1", "LOTTERY", 10)
        assert isinstance(result.error, ValidationError)

    async def test_missing_account(self, db, recorder) -> None:
        result = await recorder.record(db, "ghost", "BONUS", 10)
        assert isinstance(result.error, AccountNotFoundError)

    async def test_insufficient_funds_leaves_state_untouched(self, db, ledger, recorder) -> None:
        ledger.open("u1", 30)
        result = await recorder.record(db, "u1", "ITEM_PURCHASE", -31)

        assert isinstance(result.error, InsufficientFundsError)
        assert ledger.balance("u1") == 30
        assert len(ledger.transactions) == 1

    async def test_exact_balance_debit_allowed(self, db, ledger, recorder) -> None:
        ledger.open("u1", 30)
        result = await recorder.record(db, "u1", "ITEM_PURCHASE", -30)
        assert result.value.new_balance == 0

    async def test_unlimited_account_may_go_negative(self, db, ledger, recorder) -> None:
        ledger.open("admin", 0, unlimited=True)
        result = await recorder.record(db, "admin", "ITEM_PURCHASE", -500)

        assert result.success
        assert ledger.balance("admin") == -500
        assert ledger.ledger_sum("admin") == -500

    async def test_lifetime_counters(self, db, ledger, recorder) -> None:
        ledger.open("u1", 0)
        await recorder.record(db, "u1", "PURCHASE", 1000)
        await recorder.record(db, "u1", "ITEM_PURCHASE", -300)
        await recorder.record(db, "u1", "REFUND", 100)
        await recorder.record(db, "u1", "SCENARIO_PAYOUT", 70)

        acct = ledger.accounts["u1"]
        assert acct.lifetime_purchased == 1000
        assert acct.lifetime_spent == 200
        assert acct.lifetime_earned == 70


class TestIdempotency:
    async def test_same_reference_applies_once(self, db, ledger, recorder) -> None:
        ledger.open("u1", 0)
        first = await recorder.record(
            db, "u1", "BONUS", 100, reference_type="reward", reference_id="m1"
        )
        second = await recorder.record(
            db, "u1", "BONUS", 100, reference_type="reward", reference_id="m1"
        )

        assert not first.value.idempotent_hit
        assert second.value.idempotent_hit
        assert second.value.transaction.id == first.value.transaction.id
        assert ledger.balance("u1") == 100

    async def test_key_includes_type(self, db, ledger, recorder) -> None:
        ledger.open("u1", 500)
        await recorder.record(db, "u1", "ITEM_PURCHASE", -40, reference_type="purchase", reference_id="p1")
        await recorder.record(db, "u1", "REFUND", 40, reference_type="purchase", reference_id="p1")
        assert ledger.balance("u1") == 500
        assert len(ledger.transactions) == 3

    async def test_key_includes_user(self, db, ledger, recorder) -> None:
        ledger.open("a", 0)
        ledger.open("b", 0)
        await recorder.record(db, "a", "SCENARIO_PAYOUT", 10, reference_type="scenario", reference_id="s1")
        await recorder.record(db, "b", "SCENARIO_PAYOUT", 20, reference_type="scenario", reference_id="s1")
        assert ledger.balance("a") == 10
        assert ledger.balance("b") == 20

    async def test_lost_insert_race_returns_winner(self, db, ledger) -> None:
        ledger.open("u1", 0)

        class RacyStore(type(ledger)):  # type: ignore[misc]
            """Pre-check misses; a concurrent writer lands before our insert."""

            checks = 0

            async def find_transaction(self, db, *args):  # type: ignore[no-untyped-def]
                RacyStore.checks += 1
                if RacyStore.checks == 1:
                    await ledger.insert_transaction(
                        db, "u1", "BONUS", 100, 100, "reward", "m1", None, {}
                    )
                    ledger.accounts["u1"].balance = 100
                    return None
                return await super().find_transaction(db, *args)

        racy = RacyStore()
        racy.accounts, racy.transactions = ledger.accounts, ledger.transactions
        result = await TransactionRecorder(racy).record(
            db, "u1", "BONUS", 100, reference_type="reward", reference_id="m1"
        )

        assert result.value.idempotent_hit
        assert racy.accounts["u1"].balance == 100
        assert len(racy.transactions) == 1

    async def test_unkeyed_duplicate_is_internal(self, db, ledger, recorder, monkeypatch) -> None:
        ledger.open("u1", 0)

        async def boom(*args, **kwargs):  # type: ignore[no-untyped-def]
            raise DuplicateTransactionError("?")

        monkeypatch.setattr(ledger, "insert_transaction", boom)
        result = await recorder.record(db, "u1", "BONUS", 5)
        assert isinstance(result.error, InternalError)
        assert ledger.balance("u1") == 0


class TestConservation:
    async def test_random_sequence_conserves_balance(self, db, ledger, recorder) -> None:
        ledger.open("u1", 1000)
        amounts = [-200, 50, -900, 300, -1, 7, -150, -2000, 40]
        for i, amount in enumerate(amounts):
            tx_type = "ITEM_PURCHASE" if amount < 0 else "BONUS"
            await recorder.record(db, "u1", tx_type, amount, reference_type="t", reference_id=str(i))
            assert ledger.balance("u1") >= 0
            assert ledger.balance("u1") == ledger.ledger_sum("u1")

    async def test_apply_raises(self, db, ledger, recorder) -> None:
        ledger.open("u1", 0)
        with pytest.raises(InsufficientFundsError):
            await recorder.apply(db, "u1", "ITEM_PURCHASE", -1)
