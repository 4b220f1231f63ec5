"""Domain models for pm_wallet: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class Account:
    user_id: str
    balance: int                     # AP Coins
    lifetime_purchased: int = 0
    lifetime_earned: int = 0
    lifetime_spent: int = 0
    has_unlimited_balance: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class WalletTransaction:
    id: int                          # BIGSERIAL
    user_id: str
    transaction_type: str            # TransactionType value
    amount: int                      # signed: positive=credit negative=debit
    balance_after: int               # balance snapshot after this entry
    reference_type: str | None = None
    reference_id: str | None = None
    description: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None


@dataclass
class RecordOutcome:
    """What TransactionRecorder.record hands back on success."""

    new_balance: int
    transaction: WalletTransaction
    idempotent_hit: bool = False


@dataclass
class LifetimeDelta:
    purchased: int = 0
    earned: int = 0
    spent: int = 0
    refunded: int = 0                # reduces lifetime_spent, floored at 0
