"""Repository Protocol for scenarios, predictions and payouts.

Every status change is a conditional update; a None return means the row was
not in the expected state and the caller decides which error that is.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_scenario.domain.models import Payout, Prediction, Scenario


class ScenarioRepositoryProtocol(Protocol):
    async def get_scenario(self, db: AsyncSession, scenario_id: str) -> Scenario | None: ...

    async def create_scenario(
        self, db: AsyncSession, scenario_id: str, creator_id: str, status: str
    ) -> Scenario: ...

    async def open_scenario(self, db: AsyncSession, scenario_id: str) -> Scenario | None:
        """DRAFT -> ACTIVE."""
        ...

    async def close_scenario(self, db: AsyncSession, scenario_id: str) -> Scenario | None:
        """ACTIVE -> CLOSED."""
        ...

    async def resolve_gate(
        self, db: AsyncSession, scenario_id: str, result: str
    ) -> Scenario | None:
        """ACTIVE/CLOSED -> RESOLVED. The single idempotency gate for payouts."""
        ...

    async def cancel_gate(self, db: AsyncSession, scenario_id: str) -> Scenario | None:
        """DRAFT/ACTIVE/CLOSED -> CANCELLED."""
        ...

    async def set_pool_remainder(
        self, db: AsyncSession, scenario_id: str, remainder: int
    ) -> None: ...

    async def list_predictions(
        self, db: AsyncSession, scenario_id: str
    ) -> list[Prediction]: ...

    async def insert_prediction(
        self,
        db: AsyncSession,
        prediction_id: str,
        scenario_id: str,
        user_id: str,
        side: str,
        amount: int,
    ) -> Prediction | None:
        """Returns None if the user already has a prediction on this scenario."""
        ...

    async def settle_prediction(
        self, db: AsyncSession, prediction_id: str, status: str, payout: int
    ) -> bool:
        """PENDING -> status. False if the prediction was already settled."""
        ...

    async def insert_payout(self, db: AsyncSession, payout: Payout) -> Payout | None:
        """Returns None if a payout row already exists for (scenario, recipient)."""
        ...

    async def list_payouts(
        self, db: AsyncSession, recipient_id: str, fulfilled: bool | None, limit: int
    ) -> list[Payout]: ...

    async def record_steal(
        self,
        db: AsyncSession,
        scenario_id: str,
        thief_id: str,
        expected_steal_count: int,
        price: int,
        now: datetime,
    ) -> Scenario | None:
        """Hand holdership to the thief if nothing changed since it was read."""
        ...

    async def apply_shield(
        self,
        db: AsyncSession,
        scenario_id: str,
        holder_id: str,
        protected_until: datetime,
    ) -> Scenario | None: ...
