"""cm_ledger admin REST API — manual expenses and settlement confirmation."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, success_response
from src.cm_config.domain.models import OrgConfig
from src.cm_gateway.auth.dependencies import get_config_snapshot, require_admin
from src.cm_identity.domain.models import Identity
from src.cm_ledger.application.schemas import ExpenseRequest, TransactionItem
from src.cm_ledger.application.service import TransactionService

router = APIRouter(prefix="/admin", tags=["admin"])

_service = TransactionService()


@router.post("/expenses")
async def record_expense(
    body: ExpenseRequest,
    config: Annotated[OrgConfig, Depends(get_config_snapshot)],
    admin: Annotated[Identity, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    tx = await _service.record_expense(
        db,
        config,
        body.amount_cents,
        body.description,
        body.category,
        body.recipient,
        admin,
    )
    resp = success_response(TransactionItem.from_domain(tx).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/transactions/{transaction_id}/confirm")
async def confirm_transaction(
    transaction_id: int,
    config: Annotated[OrgConfig, Depends(get_config_snapshot)],
    admin: Annotated[Identity, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    tx = await _service.confirm_transaction(db, config, transaction_id, admin.handle)
    resp = success_response(TransactionItem.from_domain(tx).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
