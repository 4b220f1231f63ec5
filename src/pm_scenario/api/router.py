"""pm_scenario REST endpoints.

POST /scenarios/{scenario_id}/predictions          stake on YES/NO
POST /scenarios/{scenario_id}/steal                take over holdership
POST /scenarios/{scenario_id}/shield               protect held scenario
GET  /scenarios/{scenario_id}                      scenario detail
GET  /wallet/payouts                               caller's payout history
POST /admin/scenarios                              create (admin)
POST /admin/scenarios/{scenario_id}/open|close     lifecycle (admin)
POST /admin/scenarios/{scenario_id}/resolve        settle (admin)
POST /admin/scenarios/{scenario_id}/cancel         refund all stakes (admin)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.database import get_db_session
from src.pm_common.response import ApiResponse, result_response
from src.pm_gateway.auth.dependencies import get_current_user_id, require_admin
from src.pm_scenario.application.schemas import (
    CreateScenarioRequest,
    PlacePredictionRequest,
    ResolveScenarioRequest,
    ShieldRequest,
)
from src.pm_scenario.application.service import ScenarioApplicationService

router = APIRouter(prefix="/scenarios", tags=["scenarios"])
payouts_router = APIRouter(prefix="/wallet", tags=["wallet"])
admin_router = APIRouter(prefix="/admin/scenarios", tags=["admin"])

_service = ScenarioApplicationService()


@router.get("/{scenario_id}")
async def get_scenario(
    scenario_id: str,
    request: Request,
    _user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.get_scenario(db, scenario_id)
    return result_response(result, request)


@router.post("/{scenario_id}/predictions")
async def place_prediction(
    scenario_id: str,
    body: PlacePredictionRequest,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.place_prediction(
        db, user_id, scenario_id, body.side.value, body.amount
    )
    return result_response(result, request)


@router.post("/{scenario_id}/steal")
async def steal_scenario(
    scenario_id: str,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.steal(db, user_id, scenario_id)
    return result_response(result, request)


@router.post("/{scenario_id}/shield")
async def shield_scenario(
    scenario_id: str,
    body: ShieldRequest,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.shield(db, user_id, scenario_id, body.shield_type.value)
    return result_response(result, request)


@payouts_router.get("/payouts")
async def list_payouts(
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    fulfilled: bool | None = Query(None, description="Filter by was_fulfilled"),
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    result = await _service.list_payouts(db, user_id, fulfilled, limit)
    return result_response(result, request)


@admin_router.post("")
async def create_scenario(
    body: CreateScenarioRequest,
    request: Request,
    _admin: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.create_scenario(db, body.scenario_id, body.creator_id, body.activate)
    return result_response(result, request)


@admin_router.post("/{scenario_id}/open")
async def open_scenario(
    scenario_id: str,
    request: Request,
    _admin: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.open_scenario(db, scenario_id)
    return result_response(result, request)


@admin_router.post("/{scenario_id}/close")
async def close_scenario(
    scenario_id: str,
    request: Request,
    _admin: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.close_scenario(db, scenario_id)
    return result_response(result, request)


@admin_router.post("/{scenario_id}/resolve")
async def resolve_scenario(
    scenario_id: str,
    body: ResolveScenarioRequest,
    request: Request,
    _admin: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.resolve(db, scenario_id, body.result.value)
    return result_response(result, request)


@admin_router.post("/{scenario_id}/cancel")
async def cancel_scenario(
    scenario_id: str,
    request: Request,
    _admin: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.cancel(db, scenario_id)
    return result_response(result, request)
