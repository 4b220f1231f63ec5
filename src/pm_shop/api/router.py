"""pm_shop REST endpoints.

GET  /shop/items/{item_id}              item detail with effective price
POST /shop/items/{item_id}/purchase     buy with AP Coins
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.database import get_db_session
from src.pm_common.response import ApiResponse, result_response
from src.pm_gateway.auth.dependencies import get_current_user_id
from src.pm_shop.application.schemas import PurchaseRequest
from src.pm_shop.application.service import ShopApplicationService

router = APIRouter(prefix="/shop", tags=["shop"])

_service = ShopApplicationService()


@router.get("/items/{item_id}")
async def get_item(
    item_id: str,
    request: Request,
    _user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.get_item(db, item_id)
    return result_response(result, request)


@router.post("/items/{item_id}/purchase")
async def purchase_item(
    item_id: str,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    body: PurchaseRequest | None = None,
) -> ApiResponse:
    quantity = body.quantity if body is not None else 1
    result = await _service.purchase(db, user_id, item_id, quantity)
    return result_response(result, request)
