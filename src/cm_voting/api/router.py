"""cm_voting public REST API — proposals, votes and comments."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, success_response
from src.cm_config.domain.models import OrgConfig
from src.cm_gateway.auth.dependencies import (
    get_config_snapshot,
    optional_member,
    require_member,
)
from src.cm_identity.domain.models import Identity
from src.cm_voting.application.schemas import (
    CommentItem,
    CommentRequest,
    ProposalCreateRequest,
    ProposalDetailResponse,
    ProposalItem,
    VoteItem,
    VoteRequest,
)
from src.cm_voting.application.service import GovernanceService

router = APIRouter(prefix="/proposals", tags=["proposals"])

_service = GovernanceService()


@router.get("")
async def list_active_proposals(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    proposals = await _service.get_active_proposals(db)
    resp = success_response([ProposalItem.from_domain(p).model_dump() for p in proposals])
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{proposal_id}")
async def get_proposal(
    proposal_id: int,
    member: Annotated[Identity | None, Depends(optional_member)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    detail = await _service.get_proposal_by_id(db, proposal_id)
    has_voted = None
    if member is not None:
        has_voted = await _service.has_user_voted(db, proposal_id, member.id)
    data = ProposalDetailResponse.from_domain(detail, has_voted)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("")
async def create_proposal(
    body: ProposalCreateRequest,
    config: Annotated[OrgConfig, Depends(get_config_snapshot)],
    member: Annotated[Identity, Depends(require_member)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    proposal = await _service.create_proposal(
        db, config, body.title, body.description, member
    )
    resp = success_response(ProposalItem.from_domain(proposal).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/{proposal_id}/votes")
async def cast_vote(
    proposal_id: int,
    body: VoteRequest,
    config: Annotated[OrgConfig, Depends(get_config_snapshot)],
    member: Annotated[Identity, Depends(require_member)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    vote = await _service.cast_vote(db, config, proposal_id, member, body.choice)
    resp = success_response(VoteItem.from_domain(vote).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/{proposal_id}/comments")
async def add_comment(
    proposal_id: int,
    body: CommentRequest,
    config: Annotated[OrgConfig, Depends(get_config_snapshot)],
    member: Annotated[Identity, Depends(require_member)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    comment = await _service.add_comment(db, config, proposal_id, member, body.content)
    resp = success_response(CommentItem.from_domain(comment).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
