"""Repository Protocol for cm_voting.

Transaction ownership: implementations never commit; the application service
owns the unit of work.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_voting.domain.models import Comment, Proposal, Vote


class ProposalRepositoryProtocol(Protocol):
    async def create_proposal(
        self,
        db: AsyncSession,
        title: str,
        description: str,
        author_ref: str,
        author_handle: str,
        ends_at: datetime,
    ) -> Proposal: ...

    async def get_by_id(self, db: AsyncSession, proposal_id: int) -> Proposal | None: ...

    async def get_for_update(self, db: AsyncSession, proposal_id: int) -> Proposal | None:
        """SELECT ... FOR UPDATE — serializes concurrent closes."""
        ...

    async def insert_vote(
        self,
        db: AsyncSession,
        proposal_id: int,
        user_ref: str,
        user_handle: str,
        choice: str,
    ) -> Vote | None:
        """Returns None when (proposal_id, user_ref) already exists."""
        ...

    async def increment_count(
        self, db: AsyncSession, proposal_id: int, choice: str, now: datetime
    ) -> Proposal | None:
        """Returns None unless the proposal is active and still inside its voting window."""
        ...

    async def close(
        self, db: AsyncSession, proposal_id: int, result: str, closed_at: datetime
    ) -> Proposal: ...

    async def list_active(self, db: AsyncSession, now: datetime) -> list[Proposal]: ...

    async def list_all(self, db: AsyncSession, limit: int) -> list[Proposal]: ...

    async def list_votes(self, db: AsyncSession, proposal_id: int) -> list[Vote]: ...

    async def has_voted(self, db: AsyncSession, proposal_id: int, user_ref: str) -> bool: ...

    async def insert_comment(
        self,
        db: AsyncSession,
        proposal_id: int,
        author_ref: str,
        author_handle: str,
        content: str,
    ) -> Comment: ...

    async def list_comments(self, db: AsyncSession, proposal_id: int) -> list[Comment]: ...
