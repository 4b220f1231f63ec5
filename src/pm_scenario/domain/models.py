"""Domain models for pm_scenario: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Scenario:
    id: str
    creator_id: str
    status: str                           # ScenarioStatus value
    current_holder_id: str | None = None
    result: str | None = None             # ScenarioResult value, set on resolution
    theft_pool: int = 0                   # AP Coins paid in by steals
    steal_count: int = 0
    can_be_stolen: bool = True
    protected_until: datetime | None = None
    pool_remainder: int = 0               # rounding remainder retained by the pool
    resolved_at: datetime | None = None
    created_at: datetime | None = None


@dataclass
class Prediction:
    id: str
    scenario_id: str
    user_id: str
    side: str                             # ScenarioResult value
    amount: int
    status: str = "PENDING"               # PredictionStatus value
    payout: int = 0
    created_at: datetime | None = None


@dataclass
class Payout:
    scenario_id: str
    recipient_id: str
    payout_amount: int
    pool_total: int
    theft_pool_at_resolution: int
    scenario_result: str
    was_fulfilled: bool
    status: str                           # PayoutStatus value
    id: int | None = None
    created_at: datetime | None = None
    processed_at: datetime | None = None


@dataclass
class ResolutionOutcome:
    scenario_id: str
    result: str
    pool_total: int
    winning_stake_total: int
    was_fulfilled: bool
    pool_remainder: int
    payouts: list[Payout] = field(default_factory=list)


@dataclass
class Refund:
    user_id: str
    prediction_id: str
    amount: int


@dataclass
class CancellationOutcome:
    scenario_id: str
    refunds: list[Refund] = field(default_factory=list)


@dataclass
class StealOutcome:
    scenario_id: str
    steal_price: int
    next_price: int
    pool_total: int
    steal_number: int
    new_balance: int


@dataclass
class ShieldOutcome:
    scenario_id: str
    shield_type: str
    protected_until: datetime
    price: int
    new_balance: int


@dataclass
class PlacedPrediction:
    prediction: Prediction
    new_balance: int
