"""Pydantic schemas for pm_rewards API."""

from pydantic import BaseModel


class ClaimRewardResponse(BaseModel):
    reward_ref: str
    source: str
    credited: int
    xp: int
    achievement_points: int
    new_balance: int | None
    total_xp: int
    total_achievement_points: int
