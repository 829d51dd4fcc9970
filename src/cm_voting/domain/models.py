"""Domain models for cm_voting — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime

from src.cm_common.enums import ProposalStatus


@dataclass
class Proposal:
    id: int
    title: str
    description: str
    author_ref: str
    author_handle: str
    status: str                      # ProposalStatus value
    result: str                      # ProposalResult value
    yes_count: int
    no_count: int
    abstain_count: int
    ends_at: datetime
    closed_at: datetime | None = None
    created_at: datetime | None = None
    comment_count: int = 0

    @property
    def vote_count(self) -> int:
        return self.yes_count + self.no_count + self.abstain_count

    @property
    def is_closed(self) -> bool:
        return self.status == ProposalStatus.CLOSED

    def is_open_at(self, now: datetime) -> bool:
        return self.status == ProposalStatus.ACTIVE and self.ends_at > now


@dataclass
class Vote:
    proposal_id: int
    user_ref: str
    user_handle: str
    choice: str                      # VoteChoice value
    voted_at: datetime | None = None


@dataclass
class Comment:
    id: int
    proposal_id: int
    author_ref: str
    author_handle: str
    content: str
    created_at: datetime | None = None


@dataclass
class ProposalDetail:
    proposal: Proposal
    votes: list[Vote] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
