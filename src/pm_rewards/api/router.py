"""pm_rewards REST endpoints.

POST /rewards/{reward_ref}/claim     claim a completed mission/achievement
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.database import get_db_session
from src.pm_common.response import ApiResponse, result_response
from src.pm_gateway.auth.dependencies import get_current_user_id
from src.pm_rewards.application.service import RewardApplicationService

router = APIRouter(prefix="/rewards", tags=["rewards"])

_service = RewardApplicationService()


@router.post("/{reward_ref}/claim")
async def claim_reward(
    reward_ref: str,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.claim(db, user_id, reward_ref)
    return result_response(result, request)
