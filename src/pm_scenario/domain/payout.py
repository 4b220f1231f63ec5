"""Pool settlement math: pure functions, no I/O.

Proportional pool share:

    pool_total          = Σ stake over every prediction
    winning_stake_total = Σ stake over predictions on the winning side
    payout(stake)       = floor(stake * pool_total / winning_stake_total)

Rarer correct predictions divide a larger pool among fewer stakes. Payouts are
rounded down; the remainder stays with the pool. When nobody picked the
winning side every stake is refunded and the market is unfulfilled.

The theft pool (coins paid in by steals) goes to the current holder on a YES
result and stays with the house on NO.
"""

from dataclasses import dataclass, field

from src.pm_common.coins import proportional_share
from src.pm_common.enums import PredictionStatus, ScenarioResult
from src.pm_scenario.domain.models import Prediction


@dataclass
class PredictionSettlement:
    prediction_id: str
    user_id: str
    status: str
    payout: int


@dataclass
class RecipientPayout:
    recipient_id: str
    stake_payout: int = 0
    theft_payout: int = 0

    @property
    def total(self) -> int:
        return self.stake_payout + self.theft_payout


@dataclass
class Settlement:
    result: str
    pool_total: int
    winning_stake_total: int
    was_fulfilled: bool
    remainder: int
    theft_pool: int
    predictions: list[PredictionSettlement] = field(default_factory=list)
    recipients: dict[str, RecipientPayout] = field(default_factory=dict)


def compute_settlement(
    predictions: list[Prediction],
    result: str,
    theft_pool: int = 0,
    holder_id: str | None = None,
) -> Settlement:
    """Split a scenario's pool between predictions for the given result.

    Only PENDING predictions take part; anything already settled is ignored.
    Recipients keep first-seen order so payouts are issued deterministically.
    """
    pending = [p for p in predictions if p.status == PredictionStatus.PENDING]
    pool_total = sum(p.amount for p in pending)
    winning_stake_total = sum(p.amount for p in pending if p.side == result)
    was_fulfilled = winning_stake_total > 0

    settlement = Settlement(
        result=result,
        pool_total=pool_total,
        winning_stake_total=winning_stake_total,
        was_fulfilled=was_fulfilled,
        remainder=0,
        theft_pool=theft_pool,
    )

    paid = 0
    for p in pending:
        if not was_fulfilled:
            status, payout = PredictionStatus.REFUNDED.value, p.amount
        elif p.side == result:
            status = PredictionStatus.WON.value
            payout = proportional_share(p.amount, winning_stake_total, pool_total)
        else:
            status, payout = PredictionStatus.LOST.value, 0
        settlement.predictions.append(
            PredictionSettlement(p.id, p.user_id, status, payout)
        )
        if payout > 0:
            recipient = settlement.recipients.setdefault(
                p.user_id, RecipientPayout(p.user_id)
            )
            recipient.stake_payout += payout
            paid += payout

    settlement.remainder = pool_total - paid

    if theft_pool > 0 and holder_id and result == ScenarioResult.YES:
        recipient = settlement.recipients.setdefault(holder_id, RecipientPayout(holder_id))
        recipient.theft_payout = theft_pool

    return settlement
