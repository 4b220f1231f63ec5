"""MarketResolver: scenario state machine and settlement.

    ACTIVE/CLOSED --resolve--> RESOLVED   (terminal, payouts)
    DRAFT/ACTIVE/CLOSED --cancel--> CANCELLED  (terminal, refunds)

Resolution runs in the caller's database transaction:

1. Conditional status transition (the idempotency gate). A scenario that was
   already transitioned returns AlreadyResolved without recomputation.
2. Load predictions and compute the settlement (see payout.py).
3. Settle every prediction exactly once (PENDING -> WON/LOST/REFUNDED).
4. Credit every recipient through TransactionRecorder with a
   ('scenario', scenario_id) reference, so a bypassed gate still pays at most
   once per recipient.
   Recipients are credited in user_id order, so concurrent settlements
   sharing accounts take their row locks in the same order.
5. Persist one Payout row per recipient.

The resolver returns the payout set; notifying recipients is left to
whoever consumes it.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.enums import (
    PayoutStatus,
    PredictionStatus,
    ReferenceType,
    ScenarioResult,
    ScenarioStatus,
    TransactionType,
)
from src.pm_common.errors import (
    AccountNotFoundError,
    AlreadyResolvedError,
    AppError,
    ScenarioNotFoundError,
    ScenarioNotResolvableError,
    ValidationError,
)
from src.pm_common.result import Result, capture
from src.pm_scenario.domain.models import (
    CancellationOutcome,
    Payout,
    Refund,
    ResolutionOutcome,
)
from src.pm_scenario.domain.payout import RecipientPayout, Settlement, compute_settlement
from src.pm_scenario.domain.repository import ScenarioRepositoryProtocol
from src.pm_wallet.domain.recorder import TransactionRecorder

logger = logging.getLogger(__name__)


def parse_result(result: str) -> ScenarioResult:
    try:
        return ScenarioResult(str(result).upper())
    except ValueError:
        raise ValidationError(f"Result must be YES or NO, got {result!r}") from None


class MarketResolver:
    def __init__(
        self, repo: ScenarioRepositoryProtocol, recorder: TransactionRecorder
    ) -> None:
        self._repo = repo
        self._recorder = recorder

    async def resolve(
        self, db: AsyncSession, scenario_id: str, result: str
    ) -> Result[ResolutionOutcome]:
        return await capture(self._resolve(db, scenario_id, result))

    async def cancel(
        self, db: AsyncSession, scenario_id: str
    ) -> Result[CancellationOutcome]:
        return await capture(self._cancel(db, scenario_id))

    async def _resolve(
        self, db: AsyncSession, scenario_id: str, result: str
    ) -> ResolutionOutcome:
        outcome = parse_result(result).value

        scenario = await self._repo.resolve_gate(db, scenario_id, outcome)
        if scenario is None:
            raise await self._gate_rejection(db, scenario_id)

        predictions = await self._repo.list_predictions(db, scenario_id)
        settlement = compute_settlement(
            predictions, outcome, scenario.theft_pool, scenario.current_holder_id
        )

        for ps in settlement.predictions:
            settled = await self._repo.settle_prediction(db, ps.prediction_id, ps.status, ps.payout)
            if not settled:
                logger.warning("Prediction %s was already settled", ps.prediction_id)

        payouts = [
            await self._pay_recipient(db, scenario_id, settlement, recipient)
            for recipient in sorted(settlement.recipients.values(), key=lambda r: r.recipient_id)
        ]

        if settlement.remainder:
            await self._repo.set_pool_remainder(db, scenario_id, settlement.remainder)

        logger.info(
            "Resolved scenario=%s result=%s pool=%d winning=%d fulfilled=%s payouts=%d remainder=%d",
            scenario_id,
            outcome,
            settlement.pool_total,
            settlement.winning_stake_total,
            settlement.was_fulfilled,
            len(payouts),
            settlement.remainder,
        )
        return ResolutionOutcome(
            scenario_id=scenario_id,
            result=outcome,
            pool_total=settlement.pool_total,
            winning_stake_total=settlement.winning_stake_total,
            was_fulfilled=settlement.was_fulfilled,
            pool_remainder=settlement.remainder,
            payouts=payouts,
        )

    async def _pay_recipient(
        self,
        db: AsyncSession,
        scenario_id: str,
        settlement: Settlement,
        recipient: RecipientPayout,
    ) -> Payout:
        status = PayoutStatus.COMPLETED.value
        credits = []
        if recipient.stake_payout > 0:
            credits.append((
                TransactionType.SCENARIO_PAYOUT if settlement.was_fulfilled else TransactionType.REFUND,
                recipient.stake_payout,
                "Scenario payout" if settlement.was_fulfilled else "Stake refund: unfulfilled scenario",
            ))
        if recipient.theft_payout > 0:
            credits.append((TransactionType.SCENARIO_STEAL, recipient.theft_payout, "Theft pool payout"))

        for tx_type, amount, description in credits:
            credited = await self._recorder.record(
                db,
                recipient.recipient_id,
                tx_type,
                amount,
                description=description,
                reference_type=ReferenceType.SCENARIO.value,
                reference_id=scenario_id,
                metadata={
                    "scenario_result": settlement.result,
                    "pool_total": settlement.pool_total,
                    "winning_stake_total": settlement.winning_stake_total,
                },
            )
            if credited.success:
                continue
            if isinstance(credited.error, AccountNotFoundError):
                logger.error(
                    "Payout failed: scenario=%s recipient=%s amount=%d: %s",
                    scenario_id, recipient.recipient_id, amount, credited.error.message,
                )
                status = PayoutStatus.FAILED.value
                continue
            raise credited.error  # type: ignore[misc]

        payout = Payout(
            scenario_id=scenario_id,
            recipient_id=recipient.recipient_id,
            payout_amount=recipient.total,
            pool_total=settlement.pool_total,
            theft_pool_at_resolution=settlement.theft_pool,
            scenario_result=settlement.result,
            was_fulfilled=settlement.was_fulfilled,
            status=status,
        )
        stored = await self._repo.insert_payout(db, payout)
        if stored is None:
            logger.warning(
                "Payout row already present: scenario=%s recipient=%s",
                scenario_id, recipient.recipient_id,
            )
            return payout
        return stored

    async def _cancel(self, db: AsyncSession, scenario_id: str) -> CancellationOutcome:
        scenario = await self._repo.cancel_gate(db, scenario_id)
        if scenario is None:
            raise await self._gate_rejection(db, scenario_id)

        refunds: list[Refund] = []
        predictions = await self._repo.list_predictions(db, scenario_id)
        for p in sorted(predictions, key=lambda p: (p.user_id, p.id)):
            if p.status != PredictionStatus.PENDING:
                continue
            await self._repo.settle_prediction(db, p.id, PredictionStatus.REFUNDED.value, p.amount)
            await self._recorder.apply(
                db,
                p.user_id,
                TransactionType.REFUND,
                p.amount,
                description="Stake refund: scenario cancelled",
                reference_type=ReferenceType.SCENARIO.value,
                reference_id=scenario_id,
            )
            refunds.append(Refund(user_id=p.user_id, prediction_id=p.id, amount=p.amount))

        logger.info("Cancelled scenario=%s refunds=%d", scenario_id, len(refunds))
        return CancellationOutcome(scenario_id=scenario_id, refunds=refunds)

    async def _gate_rejection(self, db: AsyncSession, scenario_id: str) -> AppError:
        scenario = await self._repo.get_scenario(db, scenario_id)
        if scenario is None:
            return ScenarioNotFoundError(scenario_id)
        if scenario.status == ScenarioStatus.RESOLVED:
            logger.info("Resolution gate closed: scenario=%s already resolved", scenario_id)
            return AlreadyResolvedError(scenario_id)
        return ScenarioNotResolvableError(scenario_id, scenario.status)
