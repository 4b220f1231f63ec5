"""Repository Protocol for reward progress and user progression."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_rewards.domain.models import RewardProgress, UserProgress


class RewardRepositoryProtocol(Protocol):
    async def get_progress(
        self, db: AsyncSession, reward_ref: str, user_id: str
    ) -> RewardProgress | None: ...

    async def claim_gate(
        self, db: AsyncSession, reward_ref: str, user_id: str
    ) -> RewardProgress | None:
        """Completed and unclaimed -> claimed. None if someone got there first."""
        ...

    async def add_progress(
        self, db: AsyncSession, user_id: str, xp: int, achievement_points: int
    ) -> UserProgress: ...
