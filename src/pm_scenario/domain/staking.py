"""Prediction placement: escrow a stake on one side of an ACTIVE scenario."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.enums import ReferenceType, ScenarioStatus, TransactionType
from src.pm_common.errors import (
    DuplicatePredictionError,
    InvalidAmountError,
    ScenarioNotActiveError,
    ScenarioNotFoundError,
)
from src.pm_common.id_generator import generate_id
from src.pm_common.result import Result, capture
from src.pm_scenario.domain.models import PlacedPrediction
from src.pm_scenario.domain.repository import ScenarioRepositoryProtocol
from src.pm_scenario.domain.resolver import parse_result
from src.pm_wallet.domain.recorder import TransactionRecorder

logger = logging.getLogger(__name__)


class StakeService:
    def __init__(
        self, repo: ScenarioRepositoryProtocol, recorder: TransactionRecorder
    ) -> None:
        self._repo = repo
        self._recorder = recorder

    async def place(
        self, db: AsyncSession, user_id: str, scenario_id: str, side: str, amount: int
    ) -> Result[PlacedPrediction]:
        return await capture(self._place(db, user_id, scenario_id, side, amount))

    async def _place(
        self, db: AsyncSession, user_id: str, scenario_id: str, side: str, amount: int
    ) -> PlacedPrediction:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountError(f"Stake must be a positive integer, got {amount!r}")
        pick = parse_result(side).value

        scenario = await self._repo.get_scenario(db, scenario_id)
        if scenario is None:
            raise ScenarioNotFoundError(scenario_id)
        if scenario.status != ScenarioStatus.ACTIVE:
            raise ScenarioNotActiveError(scenario_id)

        prediction = await self._repo.insert_prediction(
            db, generate_id("pred"), scenario_id, user_id, pick, amount
        )
        if prediction is None:
            raise DuplicatePredictionError(scenario_id)

        # Stake is escrowed by the debit; the caller's transaction rolls the
        # prediction back if the debit is rejected.
        outcome = await self._recorder.apply(
            db,
            user_id,
            TransactionType.PREDICTION_BET,
            -amount,
            description=f"Stake {pick} on scenario {scenario_id}",
            reference_type=ReferenceType.PREDICTION.value,
            reference_id=prediction.id,
            metadata={"scenario_id": scenario_id, "side": pick},
        )
        logger.info(
            "Placed prediction %s: user=%s scenario=%s side=%s amount=%d",
            prediction.id, user_id, scenario_id, pick, amount,
        )
        return PlacedPrediction(prediction=prediction, new_balance=outcome.new_balance)
