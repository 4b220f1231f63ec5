"""In-memory stores shared by the unit tests.

The fakes conform to the repository Protocols and reproduce the guarantees
the SQL implementations get from PostgreSQL: conditional updates, unique
keys and savepoint rollback.
"""

import copy
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any
from unittest.mock import MagicMock

import pytest

from src.pm_rewards.domain.models import RewardProgress, UserProgress
from src.pm_scenario.domain.models import Payout, Prediction, Scenario
from src.pm_shop.domain.models import Purchase, ShopItem
from src.pm_wallet.domain.models import Account, LifetimeDelta, WalletTransaction
from src.pm_wallet.domain.recorder import TransactionRecorder
from src.pm_wallet.domain.repository import DuplicateTransactionError


class InMemoryLedgerStore:
    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.transactions: list[WalletTransaction] = []
        self._next_id = 1

    def open(self, user_id: str, balance: int = 0, unlimited: bool = False) -> None:
        """Seed an account whose opening balance is itself a ledger row."""
        self.accounts[user_id] = Account(
            user_id=user_id, balance=0, has_unlimited_balance=unlimited
        )
        if balance:
            self.accounts[user_id].balance = balance
            self.accounts[user_id].lifetime_earned = balance
            self.transactions.append(
                WalletTransaction(
                    id=self._take_id(),
                    user_id=user_id,
                    transaction_type="BONUS",
                    amount=balance,
                    balance_after=balance,
                    created_at=datetime.now(UTC),
                )
            )

    def balance(self, user_id: str) -> int:
        return self.accounts[user_id].balance

    def ledger_sum(self, user_id: str) -> int:
        return sum(t.amount for t in self.transactions if t.user_id == user_id)

    def _take_id(self) -> int:
        tx_id = self._next_id
        self._next_id += 1
        return tx_id

    @asynccontextmanager
    async def savepoint(self, db: Any) -> AsyncIterator[None]:
        accounts = copy.deepcopy(self.accounts)
        n_tx = len(self.transactions)
        try:
            yield
        except BaseException:
            self.accounts = accounts
            del self.transactions[n_tx:]
            raise

    async def get_account(self, db: Any, user_id: str) -> Account | None:
        account = self.accounts.get(user_id)
        return replace(account) if account else None

    async def create_account(
        self, db: Any, user_id: str, has_unlimited_balance: bool
    ) -> Account | None:
        if user_id in self.accounts:
            return None
        self.accounts[user_id] = Account(
            user_id=user_id, balance=0, has_unlimited_balance=has_unlimited_balance
        )
        return replace(self.accounts[user_id])

    async def apply_delta(
        self, db: Any, user_id: str, amount: int, lifetime: LifetimeDelta
    ) -> Account | None:
        account = self.accounts.get(user_id)
        if account is None:
            return None
        if not account.has_unlimited_balance and account.balance + amount < 0:
            return None
        account.balance += amount
        account.lifetime_purchased += lifetime.purchased
        account.lifetime_earned += lifetime.earned
        account.lifetime_spent = max(account.lifetime_spent + lifetime.spent - lifetime.refunded, 0)
        return replace(account)

    async def insert_transaction(
        self,
        db: Any,
        user_id: str,
        transaction_type: str,
        amount: int,
        balance_after: int,
        reference_type: str | None,
        reference_id: str | None,
        description: str | None,
        metadata: dict[str, Any],
    ) -> WalletTransaction:
        if reference_id is not None and self._find(
            user_id, transaction_type, reference_type, reference_id
        ):
            raise DuplicateTransactionError(reference_id)
        entry = WalletTransaction(
            id=self._take_id(),
            user_id=user_id,
            transaction_type=transaction_type,
            amount=amount,
            balance_after=balance_after,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
            metadata=dict(metadata),
            created_at=datetime.now(UTC),
        )
        self.transactions.append(entry)
        return entry

    def _find(
        self, user_id: str, transaction_type: str, reference_type: str | None, reference_id: str
    ) -> WalletTransaction | None:
        for t in self.transactions:
            if (
                t.user_id == user_id
                and t.transaction_type == transaction_type
                and t.reference_type == reference_type
                and t.reference_id == reference_id
            ):
                return t
        return None

    async def find_transaction(
        self,
        db: Any,
        user_id: str,
        transaction_type: str,
        reference_type: str,
        reference_id: str,
    ) -> WalletTransaction | None:
        return self._find(user_id, transaction_type, reference_type, reference_id)

    async def list_transactions(
        self,
        db: Any,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        transaction_type: str | None,
    ) -> list[WalletTransaction]:
        rows = [
            t
            for t in reversed(self.transactions)
            if t.user_id == user_id
            and (cursor_id is None or t.id < cursor_id)
            and (transaction_type is None or t.transaction_type == transaction_type)
        ]
        return rows[:limit]

    async def find_balance_mismatches(self, db: Any) -> list[tuple[str, int, int]]:
        return [
            (uid, a.balance, self.ledger_sum(uid))
            for uid, a in self.accounts.items()
            if a.balance != self.ledger_sum(uid)
        ]


class InMemoryScenarioRepository:
    def __init__(self) -> None:
        self.scenarios: dict[str, Scenario] = {}
        self.predictions: dict[str, Prediction] = {}
        self.payouts: dict[tuple[str, str], Payout] = {}

    def add(self, scenario_id: str, creator_id: str = "creator", status: str = "ACTIVE", **kw: Any) -> Scenario:
        kw.setdefault("current_holder_id", creator_id)
        self.scenarios[scenario_id] = Scenario(
            id=scenario_id, creator_id=creator_id, status=status, **kw
        )
        return self.scenarios[scenario_id]

    def _transition(self, scenario_id: str, allowed: tuple[str, ...], **changes: Any) -> Scenario | None:
        s = self.scenarios.get(scenario_id)
        if s is None or s.status not in allowed:
            return None
        for key, value in changes.items():
            setattr(s, key, value)
        return replace(s)

    async def get_scenario(self, db: Any, scenario_id: str) -> Scenario | None:
        s = self.scenarios.get(scenario_id)
        return replace(s) if s else None

    async def create_scenario(
        self, db: Any, scenario_id: str, creator_id: str, status: str
    ) -> Scenario:
        return replace(self.add(scenario_id, creator_id, status))

    async def open_scenario(self, db: Any, scenario_id: str) -> Scenario | None:
        return self._transition(scenario_id, ("DRAFT",), status="ACTIVE")

    async def close_scenario(self, db: Any, scenario_id: str) -> Scenario | None:
        return self._transition(scenario_id, ("ACTIVE",), status="CLOSED")

    async def resolve_gate(self, db: Any, scenario_id: str, result: str) -> Scenario | None:
        return self._transition(
            scenario_id,
            ("ACTIVE", "CLOSED"),
            status="RESOLVED",
            result=result,
            resolved_at=datetime.now(UTC),
        )

    async def cancel_gate(self, db: Any, scenario_id: str) -> Scenario | None:
        return self._transition(
            scenario_id, ("DRAFT", "ACTIVE", "CLOSED"), status="CANCELLED"
        )

    async def set_pool_remainder(self, db: Any, scenario_id: str, remainder: int) -> None:
        self.scenarios[scenario_id].pool_remainder = remainder

    async def list_predictions(self, db: Any, scenario_id: str) -> list[Prediction]:
        return [replace(p) for p in self.predictions.values() if p.scenario_id == scenario_id]

    async def insert_prediction(
        self,
        db: Any,
        prediction_id: str,
        scenario_id: str,
        user_id: str,
        side: str,
        amount: int,
    ) -> Prediction | None:
        if any(
            p.scenario_id == scenario_id and p.user_id == user_id
            for p in self.predictions.values()
        ):
            return None
        p = Prediction(prediction_id, scenario_id, user_id, side, amount)
        self.predictions[prediction_id] = p
        return replace(p)

    async def settle_prediction(
        self, db: Any, prediction_id: str, status: str, payout: int
    ) -> bool:
        p = self.predictions[prediction_id]
        if p.status != "PENDING":
            return False
        p.status, p.payout = status, payout
        return True

    async def insert_payout(self, db: Any, payout: Payout) -> Payout | None:
        key = (payout.scenario_id, payout.recipient_id)
        if key in self.payouts:
            return None
        stored = replace(payout, id=len(self.payouts) + 1, processed_at=datetime.now(UTC))
        self.payouts[key] = stored
        return replace(stored)

    async def list_payouts(
        self, db: Any, recipient_id: str, fulfilled: bool | None, limit: int
    ) -> list[Payout]:
        rows = [
            p
            for p in self.payouts.values()
            if p.recipient_id == recipient_id
            and (fulfilled is None or p.was_fulfilled == fulfilled)
        ]
        return rows[:limit]

    async def record_steal(
        self,
        db: Any,
        scenario_id: str,
        thief_id: str,
        expected_steal_count: int,
        price: int,
        now: datetime,
    ) -> Scenario | None:
        s = self.scenarios.get(scenario_id)
        if (
            s is None
            or s.status != "ACTIVE"
            or not s.can_be_stolen
            or s.steal_count != expected_steal_count
            or (s.protected_until is not None and s.protected_until > now)
        ):
            return None
        s.current_holder_id = thief_id
        s.steal_count += 1
        s.theft_pool += price
        return replace(s)

    async def apply_shield(
        self, db: Any, scenario_id: str, holder_id: str, protected_until: datetime
    ) -> Scenario | None:
        s = self.scenarios.get(scenario_id)
        if s is None or s.status != "ACTIVE" or s.current_holder_id != holder_id:
            return None
        s.protected_until = protected_until
        return replace(s)


class InMemoryShopRepository:
    def __init__(self) -> None:
        self.items: dict[str, ShopItem] = {}
        self.inventory: dict[tuple[str, str], int] = {}
        self.purchases: list[Purchase] = []
        self.fail_purchase_insert: Exception | None = None
        self.lose_stock_race = False

    @asynccontextmanager
    async def savepoint(self, db: Any) -> AsyncIterator[None]:
        items = copy.deepcopy(self.items)
        inventory = dict(self.inventory)
        n_purchases = len(self.purchases)
        try:
            yield
        except BaseException:
            self.items, self.inventory = items, inventory
            del self.purchases[n_purchases:]
            raise

    async def get_item(self, db: Any, item_id: str) -> ShopItem | None:
        item = self.items.get(item_id)
        return replace(item) if item else None

    async def get_owned_quantity(self, db: Any, user_id: str, item_id: str) -> int:
        return self.inventory.get((user_id, item_id), 0)

    async def decrement_stock(self, db: Any, item_id: str, quantity: int) -> bool:
        item = self.items[item_id]
        if self.lose_stock_race:
            return False
        if item.stock is None:
            return True
        if item.stock < quantity:
            return False
        item.stock -= quantity
        return True

    async def add_inventory(
        self,
        db: Any,
        user_id: str,
        item_id: str,
        quantity: int,
        max_per_user: int | None,
    ) -> int | None:
        owned = self.inventory.get((user_id, item_id), 0) + quantity
        if max_per_user is not None and owned > max_per_user:
            return None
        self.inventory[(user_id, item_id)] = owned
        return owned

    async def insert_purchase(self, db: Any, purchase: Purchase) -> Purchase:
        if self.fail_purchase_insert is not None:
            exc, self.fail_purchase_insert = self.fail_purchase_insert, None
            raise exc
        self.purchases.append(purchase)
        return purchase


class InMemoryRewardRepository:
    def __init__(self) -> None:
        self.progress: dict[tuple[str, str], RewardProgress] = {}
        self.user_progress: dict[str, UserProgress] = {}

    def add(self, reward_ref: str, user_id: str, **kw: Any) -> RewardProgress:
        kw.setdefault("source", "MISSION")
        self.progress[(reward_ref, user_id)] = RewardProgress(id=reward_ref, user_id=user_id, **kw)
        return self.progress[(reward_ref, user_id)]

    async def get_progress(self, db: Any, reward_ref: str, user_id: str) -> RewardProgress | None:
        p = self.progress.get((reward_ref, user_id))
        return replace(p) if p else None

    async def claim_gate(self, db: Any, reward_ref: str, user_id: str) -> RewardProgress | None:
        p = self.progress.get((reward_ref, user_id))
        if p is None or not p.is_completed or p.is_claimed:
            return None
        p.is_claimed = True
        p.claimed_at = datetime.now(UTC)
        return replace(p)

    async def add_progress(
        self, db: Any, user_id: str, xp: int, achievement_points: int
    ) -> UserProgress:
        up = self.user_progress.setdefault(user_id, UserProgress(user_id))
        up.xp += xp
        up.achievement_points += achievement_points
        return replace(up)


@pytest.fixture
def db() -> MagicMock:
    return MagicMock()


@pytest.fixture
def ledger() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def recorder(ledger: InMemoryLedgerStore) -> TransactionRecorder:
    return TransactionRecorder(ledger)


@pytest.fixture
def scenarios() -> InMemoryScenarioRepository:
    return InMemoryScenarioRepository()


@pytest.fixture
def shop() -> InMemoryShopRepository:
    return InMemoryShopRepository()


@pytest.fixture
def rewards() -> InMemoryRewardRepository:
    return InMemoryRewardRepository()
