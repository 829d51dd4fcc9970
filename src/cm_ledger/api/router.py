"""cm_ledger public REST API — donations and financial transparency reads."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.database import get_db_session
from src.cm_common.enums import TransactionStatus
from src.cm_common.errors import AnonymousNotAllowedError, ModuleDisabledError
from src.cm_common.response import ApiResponse, success_response
from src.cm_config.domain.models import OrgConfig
from src.cm_gateway.auth.dependencies import (
    get_config_snapshot,
    optional_member,
    require_member,
)
from src.cm_identity.domain.models import Identity
from src.cm_ledger.application.schemas import (
    DonationRequest,
    DonorStandingResponse,
    RecordedTransaction,
    SummaryResponse,
    TransactionItem,
)
from src.cm_ledger.application.service import SummaryService, TransactionService

router = APIRouter(prefix="/finance", tags=["finance"])

_service = TransactionService()
_summary = SummaryService()

_TYPE_PATTERN = "^(IN|OUT)$"


@router.post("/donations")
async def record_donation(
    body: DonationRequest,
    config: Annotated[OrgConfig, Depends(get_config_snapshot)],
    donor: Annotated[Identity | None, Depends(optional_member)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    if not config.donations.enabled:
        raise ModuleDisabledError("donations")
    if donor is None and not config.donations.allow_anonymous:
        raise AnonymousNotAllowedError()

    status = TransactionStatus.PENDING if body.pending else TransactionStatus.COMPLETED
    tx, created = await _service.record_donation(
        db,
        config,
        body.amount_cents,
        message=body.message,
        donor=donor,
        external_ref=body.external_ref,
        status=status,
    )
    data = RecordedTransaction(transaction=TransactionItem.from_domain(tx), created=created)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/summary")
async def get_summary(
    config: Annotated[OrgConfig, Depends(get_config_snapshot)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    summary = await _summary.get_summary(db, config)
    resp = success_response(SummaryResponse.from_domain(summary).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/me")
async def get_donor_standing(
    config: Annotated[OrgConfig, Depends(get_config_snapshot)],
    member: Annotated[Identity, Depends(require_member)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    standing = await _service.donor_standing(db, config, member)
    resp = success_response(DonorStandingResponse.from_domain(standing).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/transactions")
async def list_transactions(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    type: str | None = Query(None, pattern=_TYPE_PATTERN, description="IN or OUT"),
) -> ApiResponse:
    data = await _service.list_transactions(db, cursor, limit, type)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/transactions/recent")
async def list_recent_transactions(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(10, ge=1, le=50),
    type: str | None = Query(None, pattern=_TYPE_PATTERN, description="IN or OUT"),
) -> ApiResponse:
    items = await _service.list_recent_transactions(db, limit, type)
    resp = success_response([i.model_dump() for i in items])
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
