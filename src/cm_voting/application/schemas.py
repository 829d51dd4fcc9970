"""Pydantic schemas for cm_voting API."""

from pydantic import BaseModel, Field

from src.cm_common.enums import VoteChoice
from src.cm_voting.domain.models import Comment, Proposal, ProposalDetail, Vote

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ProposalCreateRequest(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)


class VoteRequest(BaseModel):
    choice: VoteChoice


class CommentRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ProposalItem(BaseModel):
    id: int
    title: str
    description: str
    author_handle: str
    status: str
    result: str
    yes_count: int
    no_count: int
    abstain_count: int
    vote_count: int
    comment_count: int
    ends_at: str
    closed_at: str | None
    created_at: str

    @classmethod
    def from_domain(cls, p: Proposal) -> "ProposalItem":
        return cls(
            id=p.id,
            title=p.title,
            description=p.description,
            author_handle=p.author_handle,
            status=p.status,
            result=p.result,
            yes_count=p.yes_count,
            no_count=p.no_count,
            abstain_count=p.abstain_count,
            vote_count=p.vote_count,
            comment_count=p.comment_count,
            ends_at=p.ends_at.isoformat(),
            closed_at=p.closed_at.isoformat() if p.closed_at else None,
            created_at=p.created_at.isoformat() if p.created_at else "",
        )


class VoteItem(BaseModel):
    proposal_id: int
    user_handle: str
    choice: str
    voted_at: str

    @classmethod
    def from_domain(cls, v: Vote) -> "VoteItem":
        return cls(
            proposal_id=v.proposal_id,
            user_handle=v.user_handle,
            choice=v.choice,
            voted_at=v.voted_at.isoformat() if v.voted_at else "",
        )


class CommentItem(BaseModel):
    id: int
    proposal_id: int
    author_handle: str
    content: str
    created_at: str

    @classmethod
    def from_domain(cls, c: Comment) -> "CommentItem":
        return cls(
            id=c.id,
            proposal_id=c.proposal_id,
            author_handle=c.author_handle,
            content=c.content,
            created_at=c.created_at.isoformat() if c.created_at else "",
        )


class ProposalDetailResponse(BaseModel):
    proposal: ProposalItem
    votes: list[VoteItem]
    comments: list[CommentItem]
    has_voted: bool | None  # None when the caller is anonymous

    @classmethod
    def from_domain(cls, d: ProposalDetail, has_voted: bool | None) -> "ProposalDetailResponse":
        return cls(
            proposal=ProposalItem.from_domain(d.proposal),
            votes=[VoteItem.from_domain(v) for v in d.votes],
            comments=[CommentItem.from_domain(c) for c in d.comments],
            has_voted=has_voted,
        )
