"""RewardRepository: PostgreSQL implementation of RewardRepositoryProtocol."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_rewards.domain.models import RewardProgress, UserProgress

_COLUMNS = """
    id, user_id, source, ap_coins, xp, achievement_points,
    is_completed, is_claimed, claimed_at
"""

_GET_PROGRESS_SQL = text(f"""
    SELECT {_COLUMNS} FROM reward_progress
    WHERE id = :reward_ref AND user_id = :user_id
""")

_CLAIM_GATE_SQL = text(f"""
    UPDATE reward_progress
    SET is_claimed = TRUE, claimed_at = NOW()
    WHERE id = :reward_ref AND user_id = :user_id
      AND is_completed AND NOT is_claimed
    RETURNING {_COLUMNS}
""")

_ADD_PROGRESS_SQL = text("""
    INSERT INTO user_progress (user_id, xp, achievement_points)
    VALUES (:user_id, :xp, :achievement_points)
    ON CONFLICT (user_id) DO UPDATE
    SET xp                 = user_progress.xp + EXCLUDED.xp,
        achievement_points = user_progress.achievement_points + EXCLUDED.achievement_points,
        updated_at         = NOW()
    RETURNING user_id, xp, achievement_points
""")


def _row_to_progress(row: object) -> RewardProgress:
    return RewardProgress(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        source=row.source,  # type: ignore[attr-defined]
        ap_coins=row.ap_coins,  # type: ignore[attr-defined]
        xp=row.xp,  # type: ignore[attr-defined]
        achievement_points=row.achievement_points,  # type: ignore[attr-defined]
        is_completed=row.is_completed,  # type: ignore[attr-defined]
        is_claimed=row.is_claimed,  # type: ignore[attr-defined]
        claimed_at=row.claimed_at,  # type: ignore[attr-defined]
    )


class RewardRepository:
    async def get_progress(
        self, db: AsyncSession, reward_ref: str, user_id: str
    ) -> RewardProgress | None:
        row = (
            await db.execute(_GET_PROGRESS_SQL, {"reward_ref": reward_ref, "user_id": user_id})
        ).fetchone()
        return _row_to_progress(row) if row else None

    async def claim_gate(
        self, db: AsyncSession, reward_ref: str, user_id: str
    ) -> RewardProgress | None:
        row = (
            await db.execute(_CLAIM_GATE_SQL, {"reward_ref": reward_ref, "user_id": user_id})
        ).fetchone()
        return _row_to_progress(row) if row else None

    async def add_progress(
        self, db: AsyncSession, user_id: str, xp: int, achievement_points: int
    ) -> UserProgress:
        row = (
            await db.execute(
                _ADD_PROGRESS_SQL,
                {"user_id": user_id, "xp": xp, "achievement_points": achievement_points},
            )
        ).fetchone()
        return UserProgress(
            user_id=row.user_id, xp=row.xp, achievement_points=row.achievement_points
        )
