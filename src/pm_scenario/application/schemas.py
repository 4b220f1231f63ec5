"""Pydantic schemas for pm_scenario API."""

from pydantic import BaseModel, Field

from src.pm_common.coins import coins_to_display
from src.pm_common.enums import ScenarioResult, ShieldType
from src.pm_scenario.domain.models import Payout, Scenario

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateScenarioRequest(BaseModel):
    scenario_id: str = Field(..., min_length=1, max_length=64)
    creator_id: str = Field(..., min_length=1, max_length=64)
    activate: bool = Field(True, description="Open for predictions immediately")


class PlacePredictionRequest(BaseModel):
    side: ScenarioResult
    amount: int = Field(..., gt=0, description="Stake in AP Coins")


class ResolveScenarioRequest(BaseModel):
    result: ScenarioResult


class ShieldRequest(BaseModel):
    shield_type: ShieldType = ShieldType.BASIC


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ScenarioResponse(BaseModel):
    id: str
    creator_id: str
    current_holder_id: str | None
    status: str
    result: str | None
    theft_pool: int
    steal_count: int
    protected_until: str | None
    pool_remainder: int

    @classmethod
    def from_domain(cls, s: Scenario) -> "ScenarioResponse":
        return cls(
            id=s.id,
            creator_id=s.creator_id,
            current_holder_id=s.current_holder_id,
            status=s.status,
            result=s.result,
            theft_pool=s.theft_pool,
            steal_count=s.steal_count,
            protected_until=s.protected_until.isoformat() if s.protected_until else None,
            pool_remainder=s.pool_remainder,
        )


class PredictionResponse(BaseModel):
    prediction_id: str
    scenario_id: str
    side: str
    amount: int
    status: str
    new_balance: int
    new_balance_display: str


class PayoutItem(BaseModel):
    scenario_id: str
    recipient_id: str
    payout_amount: int
    payout_display: str
    pool_total: int
    theft_pool_at_resolution: int
    scenario_result: str
    was_fulfilled: bool
    status: str
    processed_at: str | None

    @classmethod
    def from_domain(cls, p: Payout) -> "PayoutItem":
        return cls(
            scenario_id=p.scenario_id,
            recipient_id=p.recipient_id,
            payout_amount=p.payout_amount,
            payout_display=coins_to_display(p.payout_amount),
            pool_total=p.pool_total,
            theft_pool_at_resolution=p.theft_pool_at_resolution,
            scenario_result=p.scenario_result,
            was_fulfilled=p.was_fulfilled,
            status=p.status,
            processed_at=p.processed_at.isoformat() if p.processed_at else None,
        )


class ResolutionResponse(BaseModel):
    scenario_id: str
    result: str
    was_fulfilled: bool
    pool_total: int
    winning_stake_total: int
    pool_remainder: int
    payouts: list[PayoutItem]


class RefundItem(BaseModel):
    user_id: str
    prediction_id: str
    amount: int


class CancellationResponse(BaseModel):
    scenario_id: str
    refunds: list[RefundItem]


class StealResponse(BaseModel):
    scenario_id: str
    steal_price: int
    next_price: int
    pool_total: int
    steal_number: int
    new_balance: int


class ShieldResponse(BaseModel):
    scenario_id: str
    shield_type: str
    protected_until: str
    price: int
    new_balance: int


class PayoutListResponse(BaseModel):
    items: list[PayoutItem]
