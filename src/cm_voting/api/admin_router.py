"""cm_voting admin REST API — proposal history and closing."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, success_response
from src.cm_config.domain.models import OrgConfig
from src.cm_gateway.auth.dependencies import get_config_snapshot, require_admin
from src.cm_identity.domain.models import Identity
from src.cm_voting.application.schemas import ProposalItem
from src.cm_voting.application.service import GovernanceService

router = APIRouter(prefix="/admin/proposals", tags=["admin"])

_service = GovernanceService()


@router.get("")
async def list_all_proposals(
    admin: Annotated[Identity, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    proposals = await _service.get_all_proposals(db, limit)
    resp = success_response([ProposalItem.from_domain(p).model_dump() for p in proposals])
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/{proposal_id}/close")
async def close_proposal(
    proposal_id: int,
    config: Annotated[OrgConfig, Depends(get_config_snapshot)],
    admin: Annotated[Identity, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    proposal = await _service.close_proposal(db, config, proposal_id, admin)
    resp = success_response(ProposalItem.from_domain(proposal).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
