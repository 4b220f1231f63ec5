"""Domain models for pm_rewards: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class RewardProgress:
    id: str                               # reward_ref
    user_id: str
    source: str                           # RewardSource value
    ap_coins: int = 0
    xp: int = 0
    achievement_points: int = 0
    is_completed: bool = False
    is_claimed: bool = False
    claimed_at: datetime | None = None


@dataclass
class UserProgress:
    user_id: str
    xp: int = 0
    achievement_points: int = 0


@dataclass
class ClaimOutcome:
    reward_ref: str
    source: str
    credited: int
    xp: int
    achievement_points: int
    new_balance: int | None
    total_xp: int
    total_achievement_points: int
