"""cm_audit REST API — public transparency feed and the admin view."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_audit.application.service import AuditService
from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, success_response
from src.cm_config.domain.models import OrgConfig
from src.cm_gateway.auth.dependencies import get_config_snapshot, require_admin
from src.cm_identity.domain.models import Identity

router = APIRouter(tags=["audit"])

_service = AuditService()


@router.get("/transparency/audit")
async def list_public_audit(
    config: Annotated[OrgConfig, Depends(get_config_snapshot)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await _service.list_public(db, config, page, limit)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/admin/audit")
async def list_all_audit(
    admin: Annotated[Identity, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    data = await _service.list_all(db, page, limit)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
