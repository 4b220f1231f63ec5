"""RewardIssuer: mission and achievement rewards, claimed exactly once.

The conditional `is_claimed` transition is the only lock: of two concurrent
claims exactly one passes the gate and credits coins. The BONUS credit also
carries a ('reward', reward_ref) reference, so even a bypassed gate cannot
pay twice.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.enums import ReferenceType, TransactionType
from src.pm_common.errors import AlreadyClaimedError, RewardNotCompletedError, RewardNotFoundError
from src.pm_common.result import Result, capture
from src.pm_rewards.domain.models import ClaimOutcome
from src.pm_rewards.domain.repository import RewardRepositoryProtocol
from src.pm_wallet.domain.recorder import TransactionRecorder

logger = logging.getLogger(__name__)


class RewardIssuer:
    def __init__(self, repo: RewardRepositoryProtocol, recorder: TransactionRecorder) -> None:
        self._repo = repo
        self._recorder = recorder

    async def claim(self, db: AsyncSession, user_id: str, reward_ref: str) -> Result[ClaimOutcome]:
        return await capture(self._claim(db, user_id, reward_ref))

    async def _claim(self, db: AsyncSession, user_id: str, reward_ref: str) -> ClaimOutcome:
        progress = await self._repo.get_progress(db, reward_ref, user_id)
        if progress is None:
            raise RewardNotFoundError(reward_ref)
        if not progress.is_completed:
            raise RewardNotCompletedError(reward_ref)

        claimed = await self._repo.claim_gate(db, reward_ref, user_id)
        if claimed is None:
            logger.info("Reward claim rejected: user=%s ref=%s already claimed", user_id, reward_ref)
            raise AlreadyClaimedError(reward_ref)

        new_balance = None
        if claimed.ap_coins > 0:
            outcome = await self._recorder.apply(
                db,
                user_id,
                TransactionType.BONUS,
                claimed.ap_coins,
                description=f"{claimed.source.title()} reward",
                reference_type=ReferenceType.REWARD.value,
                reference_id=reward_ref,
                metadata={"source": claimed.source},
            )
            new_balance = outcome.new_balance

        totals = await self._repo.add_progress(
            db, user_id, claimed.xp, claimed.achievement_points
        )
        logger.info(
            "Reward claimed: user=%s ref=%s coins=%d xp=%d ap=%d",
            user_id, reward_ref, claimed.ap_coins, claimed.xp, claimed.achievement_points,
        )
        return ClaimOutcome(
            reward_ref=reward_ref,
            source=claimed.source,
            credited=claimed.ap_coins,
            xp=claimed.xp,
            achievement_points=claimed.achievement_points,
            new_balance=new_balance,
            total_xp=totals.xp,
            total_achievement_points=totals.achievement_points,
        )
