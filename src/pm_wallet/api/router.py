"""pm_wallet REST API: wallet reads for the caller plus admin ledger tools."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.database import get_db_session
from src.pm_common.response import ApiResponse, result_response, success_response
from src.pm_gateway.auth.dependencies import get_current_user_id, require_admin
from src.pm_wallet.application.schemas import OpenAccountRequest, RecordTransactionRequest
from src.pm_wallet.application.service import WalletApplicationService

router = APIRouter(prefix="/wallet", tags=["wallet"])
admin_router = APIRouter(prefix="/admin/wallet", tags=["admin"])

_service = WalletApplicationService()


@router.get("/stats")
async def get_wallet_stats(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.get_wallet_stats(db, user_id)
    return result_response(result, request)


@router.get("/transactions")
async def list_transactions(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    transaction_type: str | None = Query(None, description="Filter by TransactionType"),
) -> ApiResponse:
    data = await _service.list_transactions(db, user_id, cursor, limit, transaction_type)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@admin_router.post("/accounts")
async def open_account(
    body: OpenAccountRequest,
    _admin: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.open_account(db, body.user_id, body.has_unlimited_balance)
    return result_response(result, request)


@admin_router.post("/transactions")
async def record_transaction(
    body: RecordTransactionRequest,
    _admin: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.record_transaction(
        db,
        body.user_id,
        body.transaction_type,
        body.amount,
        body.description,
        body.reference_type,
        body.reference_id,
        body.metadata,
    )
    return result_response(result, request)


@admin_router.get("/audit")
async def audit_ledger(
    _admin: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.audit_ledger(db)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
