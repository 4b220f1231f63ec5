"""Scenario stealing and shields.

A user takes over holdership of an ACTIVE scenario by paying the steal price
into its theft pool:

    steal_price(steal_count) = 11 + steal_count   (11, 12, 13, ... AP)

The creator and the current holder cannot steal; a shielded scenario cannot
be stolen until its protection lapses. Holders buy shields with coins. Both
flows move money only through TransactionRecorder.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.datetime_utils import extend_window, is_active, utc_now
from src.pm_common.enums import ReferenceType, ScenarioStatus, ShieldType, TransactionType
from src.pm_common.errors import (
    ScenarioNotActiveError,
    ScenarioNotFoundError,
    StealNotAllowedError,
    ValidationError,
)
from src.pm_common.id_generator import generate_id
from src.pm_common.result import Result, capture
from src.pm_scenario.domain.models import Scenario, ShieldOutcome, StealOutcome
from src.pm_scenario.domain.repository import ScenarioRepositoryProtocol
from src.pm_wallet.domain.recorder import TransactionRecorder

logger = logging.getLogger(__name__)

STEAL_BASE_PRICE = 11


@dataclass(frozen=True)
class ShieldSpec:
    duration_hours: int
    price: int


SHIELDS: dict[ShieldType, ShieldSpec] = {
    ShieldType.BASIC: ShieldSpec(duration_hours=6, price=15),
    ShieldType.PREMIUM: ShieldSpec(duration_hours=24, price=40),
    ShieldType.ULTIMATE: ShieldSpec(duration_hours=72, price=100),
}


def steal_price(steal_count: int) -> int:
    return STEAL_BASE_PRICE + steal_count


class ScenarioStealing:
    def __init__(
        self, repo: ScenarioRepositoryProtocol, recorder: TransactionRecorder
    ) -> None:
        self._repo = repo
        self._recorder = recorder

    async def steal(
        self, db: AsyncSession, scenario_id: str, thief_id: str
    ) -> Result[StealOutcome]:
        return await capture(self._steal(db, scenario_id, thief_id))

    async def shield(
        self, db: AsyncSession, scenario_id: str, holder_id: str, shield_type: str
    ) -> Result[ShieldOutcome]:
        return await capture(self._shield(db, scenario_id, holder_id, shield_type))

    async def _active_scenario(self, db: AsyncSession, scenario_id: str) -> Scenario:
        scenario = await self._repo.get_scenario(db, scenario_id)
        if scenario is None:
            raise ScenarioNotFoundError(scenario_id)
        if scenario.status != ScenarioStatus.ACTIVE:
            raise ScenarioNotActiveError(scenario_id)
        return scenario

    async def _steal(self, db: AsyncSession, scenario_id: str, thief_id: str) -> StealOutcome:
        scenario = await self._active_scenario(db, scenario_id)
        now = utc_now()
        if not scenario.can_be_stolen:
            raise StealNotAllowedError("scenario cannot be stolen")
        if scenario.current_holder_id == thief_id:
            raise StealNotAllowedError("you already hold this scenario")
        if scenario.creator_id == thief_id:
            raise StealNotAllowedError("creators cannot steal their own scenario")
        if is_active(scenario.protected_until, now):
            raise StealNotAllowedError(
                f"scenario is shielded until {scenario.protected_until.isoformat()}"
            )

        price = steal_price(scenario.steal_count)
        updated = await self._repo.record_steal(
            db, scenario_id, thief_id, scenario.steal_count, price, now
        )
        if updated is None:
            raise StealNotAllowedError("scenario changed hands, try again")

        outcome = await self._recorder.apply(
            db,
            thief_id,
            TransactionType.SCENARIO_STEAL,
            -price,
            description=f"Steal #{updated.steal_count} of scenario {scenario_id}",
            reference_type=ReferenceType.SCENARIO_STEAL.value,
            reference_id=f"{scenario_id}:{updated.steal_count}",
            metadata={"victim_id": scenario.current_holder_id, "steal_number": updated.steal_count},
        )
        logger.info(
            "Scenario %s stolen by %s from %s for %d AP (pool=%d)",
            scenario_id, thief_id, scenario.current_holder_id, price, updated.theft_pool,
        )
        return StealOutcome(
            scenario_id=scenario_id,
            steal_price=price,
            next_price=steal_price(updated.steal_count),
            pool_total=updated.theft_pool,
            steal_number=updated.steal_count,
            new_balance=outcome.new_balance,
        )

    async def _shield(
        self, db: AsyncSession, scenario_id: str, holder_id: str, shield_type: str
    ) -> ShieldOutcome:
        try:
            kind = ShieldType(shield_type)
        except ValueError:
            raise ValidationError(f"Unknown shield type: {shield_type}") from None
        spec = SHIELDS[kind]

        scenario = await self._active_scenario(db, scenario_id)
        if scenario.current_holder_id != holder_id:
            raise ValidationError("Only the current holder can shield a scenario")

        # Stacking extends an active shield instead of overwriting it
        now = utc_now()
        protected_until = extend_window(scenario.protected_until, spec.duration_hours, now)

        updated = await self._repo.apply_shield(db, scenario_id, holder_id, protected_until)
        if updated is None:
            raise ValidationError("Scenario changed hands before the shield was applied")

        outcome = await self._recorder.apply(
            db,
            holder_id,
            TransactionType.SCENARIO_PROTECT,
            -spec.price,
            description=f"{kind.value} shield on scenario {scenario_id}",
            reference_type=ReferenceType.SCENARIO_SHIELD.value,
            reference_id=generate_id("shield"),
            metadata={"scenario_id": scenario_id, "protected_until": protected_until.isoformat()},
        )
        logger.info(
            "Shield %s on scenario %s by %s until %s",
            kind.value, scenario_id, holder_id, protected_until.isoformat(),
        )
        return ShieldOutcome(
            scenario_id=scenario_id,
            shield_type=kind.value,
            protected_until=protected_until,
            price=spec.price,
            new_balance=outcome.new_balance,
        )
