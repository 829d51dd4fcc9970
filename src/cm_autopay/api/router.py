"""cm_autopay REST API — cron trigger and status, guarded by X-Cron-Secret."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_autopay.application.schemas import RunResultResponse, StatusResponse
from src.cm_autopay.application.service import AutoPaymentScheduler
from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, success_response
from src.cm_config.domain.models import OrgConfig
from src.cm_gateway.auth.dependencies import get_config_snapshot, require_cron_secret

router = APIRouter(
    prefix="/cron",
    tags=["cron"],
    dependencies=[Depends(require_cron_secret)],
)

_scheduler = AutoPaymentScheduler()


@router.post("/run-payments")
async def run_payments(
    config: Annotated[OrgConfig, Depends(get_config_snapshot)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _scheduler.run(db, config)
    resp = success_response(RunResultResponse.from_domain(result).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/status")
async def get_status(
    config: Annotated[OrgConfig, Depends(get_config_snapshot)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    status = await _scheduler.status(db, config)
    resp = success_response(StatusResponse.from_domain(status).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
