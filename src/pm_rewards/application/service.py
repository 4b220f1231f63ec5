"""RewardApplicationService: transaction boundary around RewardIssuer."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.database import commit_result
from src.pm_common.result import Result
from src.pm_rewards.application.schemas import ClaimRewardResponse
from src.pm_rewards.domain.issuer import RewardIssuer
from src.pm_rewards.domain.repository import RewardRepositoryProtocol
from src.pm_rewards.infrastructure.persistence import RewardRepository
from src.pm_wallet.domain.recorder import TransactionRecorder
from src.pm_wallet.domain.repository import LedgerStoreProtocol
from src.pm_wallet.infrastructure.persistence import LedgerStore


class RewardApplicationService:
    def __init__(
        self,
        repo: RewardRepositoryProtocol | None = None,
        store: LedgerStoreProtocol | None = None,
    ) -> None:
        self._issuer = RewardIssuer(
            repo or RewardRepository(), TransactionRecorder(store or LedgerStore())
        )

    async def claim(
        self, db: AsyncSession, user_id: str, reward_ref: str
    ) -> Result[ClaimRewardResponse]:
        outcome = await self._issuer.claim(db, user_id, reward_ref)
        if not outcome.success:
            return await commit_result(db, Result.fail(outcome.error))  # type: ignore[arg-type]
        o = outcome.value
        assert o is not None
        return await commit_result(
            db,
            Result.ok(
                ClaimRewardResponse(
                    reward_ref=o.reward_ref,
                    source=o.source,
                    credited=o.credited,
                    xp=o.xp,
                    achievement_points=o.achievement_points,
                    new_balance=o.new_balance,
                    total_xp=o.total_xp,
                    total_achievement_points=o.total_achievement_points,
                )
            ),
        )
