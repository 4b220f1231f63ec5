"""Tests for PurchaseProcessor: stock, limits and compensation."""

import pytest
from sqlalchemy.exc import OperationalError

from src.pm_common.errors import (
    AccountNotFoundError,
    InsufficientFundsError,
    InternalError,
    ItemNotFoundError,
    LimitExceededError,
    StockExhaustedError,
    ValidationError,
)
from src.pm_shop.domain.models import ShopItem
from src.pm_shop.domain.processor import PurchaseProcessor


@pytest.fixture
def processor(shop, recorder) -> PurchaseProcessor:
    return PurchaseProcessor(shop, recorder)


def _item(item_id: str = "hat", **kw) -> ShopItem:  # type: ignore[no-untyped-def]
    kw.setdefault("name", "Hat")
    kw.setdefault("price", 40)
    return ShopItem(id=item_id, **kw)


class TestPurchase:
    async def test_debits_and_grants_inventory(self, db, ledger, shop, processor) -> None:
        shop.items["hat"] = _item(stock=5)
        ledger.open("u1", 100)

        result = await processor.purchase(db, "u1", "hat", 2)

        assert result.success
        assert result.value.total_price == 80
        assert result.value.new_balance == 20
        assert not result.value.was_free
        assert shop.items["hat"].stock == 3
        assert shop.inventory[("u1", "hat")] == 2
        assert shop.purchases[0].price_paid == 80
        debit = ledger.transactions[-1]
        assert (debit.transaction_type, debit.amount) == ("ITEM_PURCHASE", -80)
        assert debit.reference_id == result.value.purchase_id

    async def test_discount_price_wins(self, db, ledger, shop, processor) -> None:
        shop.items["hat"] = _item(discount_price=25)
        ledger.open("u1", 100)
        result = await processor.purchase(db, "u1", "hat", 1)
        assert result.value.total_price == 25

    async def test_unlimited_account_flagged_free(self, db, ledger, shop, processor) -> None:
        shop.items["hat"] = _item()
        ledger.open("staff", 0, unlimited=True)
        result = await processor.purchase(db, "staff", "hat", 1)
        assert result.value.was_free
        assert ledger.balance("staff") == -40

    async def test_free_item_skips_debit(self, db, ledger, shop, processor) -> None:
        shop.items["badge"] = _item("badge", price=0)
        ledger.open("u1", 10)
        result = await processor.purchase(db, "u1", "badge", 1)
        assert result.value.new_balance == 10
        assert len(ledger.transactions) == 1


class TestRejectionsLeaveBalanceUntouched:
    async def test_stock_exhausted(self, db, ledger, shop, processor) -> None:
        shop.items["hat"] = _item(stock=1)
        ledger.open("u1", 100)
        result = await processor.purchase(db, "u1", "hat", 2)
        assert isinstance(result.error, StockExhaustedError)
        assert ledger.balance("u1") == 100
        assert len(ledger.transactions) == 1

    async def test_limit_exceeded(self, db, ledger, shop, processor) -> None:
        shop.items["hat"] = _item(max_per_user=2)
        shop.inventory[("u1", "hat")] = 2
        ledger.open("u1", 100)
        result = await processor.purchase(db, "u1", "hat", 1)
        assert isinstance(result.error, LimitExceededError)
        assert ledger.balance("u1") == 100

    async def test_insufficient_funds(self, db, ledger, shop, processor) -> None:
        shop.items["hat"] = _item(stock=3)
        ledger.open("u1", 39)
        result = await processor.purchase(db, "u1", "hat", 1)
        assert isinstance(result.error, InsufficientFundsError)
        assert shop.items["hat"].stock == 3

    async def test_inactive_item(self, db, ledger, shop, processor) -> None:
        shop.items["hat"] = _item(is_active=False)
        result = await processor.purchase(db, "u1", "hat", 1)
        assert isinstance(result.error, ItemNotFoundError)

    async def test_missing_account(self, db, shop, processor) -> None:
        shop.items["hat"] = _item()
        result = await processor.purchase(db, "ghost", "hat", 1)
        assert isinstance(result.error, AccountNotFoundError)

    @pytest.mark.parametrize("quantity", [0, -1])
    async def test_bad_quantity(self, db, processor, quantity) -> None:
        result = await processor.purchase(db, "u1", "hat", quantity)
        assert isinstance(result.error, ValidationError)


class TestCompensation:
    async def test_lost_stock_race_refunds(self, db, ledger, shop, processor) -> None:
        shop.items["hat"] = _item(stock=1)
        shop.lose_stock_race = True
        ledger.open("u1", 100)

        result = await processor.purchase(db, "u1", "hat", 1)

        assert isinstance(result.error, StockExhaustedError)
        assert ledger.balance("u1") == 100
        assert [t.transaction_type for t in ledger.transactions[1:]] == ["ITEM_PURCHASE", "REFUND"]
        assert ledger.accounts["u1"].lifetime_spent == 0

    async def test_storage_failure_refunds_and_rolls_back_inventory(
        self, db, ledger, shop, processor
    ) -> None:
        shop.items["hat"] = _item(stock=4)
        shop.fail_purchase_insert = OperationalError("INSERT", {}, Exception("gone"))
        ledger.open("u1", 100)

        result = await processor.purchase(db, "u1", "hat", 2)

        assert isinstance(result.error, InternalError)
        assert ledger.balance("u1") == 100
        assert ledger.balance("u1") == ledger.ledger_sum("u1")
        assert shop.items["hat"].stock == 4
        assert ("u1", "hat") not in shop.inventory
        assert result.error.compensated is True
        assert [(p.status, p.price_paid) for p in shop.purchases] == [("REFUNDED", 80)]
