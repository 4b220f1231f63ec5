"""ScenarioApplicationService: owns the database transaction around each
scenario operation and maps domain outcomes to response schemas.
"""

import logging
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.coins import coins_to_display
from src.pm_common.database import commit_result
from src.pm_common.enums import ScenarioStatus
from src.pm_common.errors import (
    AppError,
    ScenarioExistsError,
    ScenarioNotFoundError,
    ScenarioNotResolvableError,
    ValidationError,
)
from src.pm_common.result import Result
from src.pm_scenario.application.schemas import (
    CancellationResponse,
    PayoutItem,
    PayoutListResponse,
    PredictionResponse,
    RefundItem,
    ResolutionResponse,
    ScenarioResponse,
    ShieldResponse,
    StealResponse,
)
from src.pm_scenario.domain.repository import ScenarioRepositoryProtocol
from src.pm_scenario.domain.resolver import MarketResolver
from src.pm_scenario.domain.staking import StakeService
from src.pm_scenario.domain.stealing import ScenarioStealing
from src.pm_scenario.infrastructure.persistence import ScenarioRepository
from src.pm_wallet.domain.recorder import TransactionRecorder
from src.pm_wallet.domain.repository import LedgerStoreProtocol
from src.pm_wallet.infrastructure.persistence import LedgerStore

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def _map(result: Result[T], fn: Callable[[T], R]) -> Result[R]:
    if not result.success:
        return Result.fail(result.error)  # type: ignore[arg-type]
    return Result.ok(fn(result.value))  # type: ignore[arg-type]


class ScenarioApplicationService:
    def __init__(
        self,
        repo: ScenarioRepositoryProtocol | None = None,
        store: LedgerStoreProtocol | None = None,
    ) -> None:
        self._repo: ScenarioRepositoryProtocol = repo or ScenarioRepository()
        recorder = TransactionRecorder(store or LedgerStore())
        self._resolver = MarketResolver(self._repo, recorder)
        self._stakes = StakeService(self._repo, recorder)
        self._stealing = ScenarioStealing(self._repo, recorder)

    # ------------------------------------------------------------------
    # Lifecycle (admin)
    # ------------------------------------------------------------------

    async def create_scenario(
        self, db: AsyncSession, scenario_id: str, creator_id: str, activate: bool
    ) -> Result[ScenarioResponse]:
        if await self._repo.get_scenario(db, scenario_id) is not None:
            return Result.fail(ScenarioExistsError(scenario_id))
        status = ScenarioStatus.ACTIVE if activate else ScenarioStatus.DRAFT
        scenario = await self._repo.create_scenario(db, scenario_id, creator_id, status.value)
        logger.info("Created scenario=%s creator=%s status=%s", scenario_id, creator_id, status.value)
        return await commit_result(db, Result.ok(ScenarioResponse.from_domain(scenario)))

    async def open_scenario(self, db: AsyncSession, scenario_id: str) -> Result[ScenarioResponse]:
        scenario = await self._repo.open_scenario(db, scenario_id)
        if scenario is None:
            return await commit_result(db, Result.fail(await self._transition_error(db, scenario_id)))
        return await commit_result(db, Result.ok(ScenarioResponse.from_domain(scenario)))

    async def close_scenario(self, db: AsyncSession, scenario_id: str) -> Result[ScenarioResponse]:
        scenario = await self._repo.close_scenario(db, scenario_id)
        if scenario is None:
            return await commit_result(db, Result.fail(await self._transition_error(db, scenario_id)))
        return await commit_result(db, Result.ok(ScenarioResponse.from_domain(scenario)))

    async def get_scenario(self, db: AsyncSession, scenario_id: str) -> Result[ScenarioResponse]:
        scenario = await self._repo.get_scenario(db, scenario_id)
        if scenario is None:
            return Result.fail(ScenarioNotFoundError(scenario_id))
        return Result.ok(ScenarioResponse.from_domain(scenario))

    async def _transition_error(self, db: AsyncSession, scenario_id: str) -> AppError:
        scenario = await self._repo.get_scenario(db, scenario_id)
        if scenario is None:
            return ScenarioNotFoundError(scenario_id)
        return ScenarioNotResolvableError(scenario_id, scenario.status)

    # ------------------------------------------------------------------
    # Settlement (admin)
    # ------------------------------------------------------------------

    async def resolve(
        self, db: AsyncSession, scenario_id: str, result: str
    ) -> Result[ResolutionResponse]:
        outcome = await self._resolver.resolve(db, scenario_id, result)
        return await commit_result(
            db,
            _map(
                outcome,
                lambda o: ResolutionResponse(
                    scenario_id=o.scenario_id,
                    result=o.result,
                    was_fulfilled=o.was_fulfilled,
                    pool_total=o.pool_total,
                    winning_stake_total=o.winning_stake_total,
                    pool_remainder=o.pool_remainder,
                    payouts=[PayoutItem.from_domain(p) for p in o.payouts],
                ),
            ),
        )

    async def cancel(self, db: AsyncSession, scenario_id: str) -> Result[CancellationResponse]:
        outcome = await self._resolver.cancel(db, scenario_id)
        return await commit_result(
            db,
            _map(
                outcome,
                lambda o: CancellationResponse(
                    scenario_id=o.scenario_id,
                    refunds=[
                        RefundItem(user_id=r.user_id, prediction_id=r.prediction_id, amount=r.amount)
                        for r in o.refunds
                    ],
                ),
            ),
        )

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def place_prediction(
        self, db: AsyncSession, user_id: str, scenario_id: str, side: str, amount: int
    ) -> Result[PredictionResponse]:
        outcome = await self._stakes.place(db, user_id, scenario_id, side, amount)
        return await commit_result(
            db,
            _map(
                outcome,
                lambda o: PredictionResponse(
                    prediction_id=o.prediction.id,
                    scenario_id=o.prediction.scenario_id,
                    side=o.prediction.side,
                    amount=o.prediction.amount,
                    status=o.prediction.status,
                    new_balance=o.new_balance,
                    new_balance_display=coins_to_display(o.new_balance),
                ),
            ),
        )

    async def steal(
        self, db: AsyncSession, user_id: str, scenario_id: str
    ) -> Result[StealResponse]:
        outcome = await self._stealing.steal(db, scenario_id, user_id)
        return await commit_result(
            db,
            _map(
                outcome,
                lambda o: StealResponse(
                    scenario_id=o.scenario_id,
                    steal_price=o.steal_price,
                    next_price=o.next_price,
                    pool_total=o.pool_total,
                    steal_number=o.steal_number,
                    new_balance=o.new_balance,
                ),
            ),
        )

    async def shield(
        self, db: AsyncSession, user_id: str, scenario_id: str, shield_type: str
    ) -> Result[ShieldResponse]:
        outcome = await self._stealing.shield(db, scenario_id, user_id, shield_type)
        return await commit_result(
            db,
            _map(
                outcome,
                lambda o: ShieldResponse(
                    scenario_id=o.scenario_id,
                    shield_type=o.shield_type,
                    protected_until=o.protected_until.isoformat(),
                    price=o.price,
                    new_balance=o.new_balance,
                ),
            ),
        )

    async def list_payouts(
        self, db: AsyncSession, user_id: str, fulfilled: bool | None, limit: int
    ) -> Result[PayoutListResponse]:
        if limit <= 0:
            return Result.fail(ValidationError("limit must be positive"))
        payouts = await self._repo.list_payouts(db, user_id, fulfilled, limit)
        return Result.ok(PayoutListResponse(items=[PayoutItem.from_domain(p) for p in payouts]))
