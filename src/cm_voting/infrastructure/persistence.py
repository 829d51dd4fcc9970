"""ProposalRepository — concrete implementation of ProposalRepositoryProtocol.

Vote counters are denormalized onto proposals and updated in the same database
transaction as the vote insert:
  1. INSERT INTO votes ... ON CONFLICT (proposal_id, user_ref) DO NOTHING RETURNING
  2. UPDATE proposals SET <choice>_count = <choice>_count + 1
     WHERE id = :id AND status = 'active' AND ends_at > :now RETURNING
The UNIQUE constraint decides duplicate votes; the guarded UPDATE decides
whether voting is still open. Either step returning no row makes the caller
roll back, so counters always equal the persisted votes.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.enums import VoteChoice
from src.cm_common.errors import InternalError, ProposalNotFoundError
from src.cm_voting.domain.models import Comment, Proposal, Vote

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_COLUMNS = """
    id, title, description, author_ref, author_handle, status, result,
    yes_count, no_count, abstain_count, ends_at, closed_at, created_at
"""

_INSERT_PROPOSAL_SQL = text(f"""
    INSERT INTO proposals (title, description, author_ref, author_handle, ends_at)
    VALUES (:title, :description, CAST(:author_ref AS UUID), :author_handle, :ends_at)
    RETURNING {_COLUMNS}
""")

_GET_SQL = text(f"""
    SELECT {_COLUMNS},
        (SELECT COUNT(*) FROM proposal_comments c WHERE c.proposal_id = p.id) AS comment_count
    FROM proposals p
    WHERE id = :id
""")

_GET_FOR_UPDATE_SQL = text(f"SELECT {_COLUMNS} FROM proposals WHERE id = :id FOR UPDATE")

_INSERT_VOTE_SQL = text("""
    INSERT INTO votes (proposal_id, user_ref, user_handle, choice)
    VALUES (:proposal_id, CAST(:user_ref AS UUID), :user_handle, :choice)
    ON CONFLICT (proposal_id, user_ref) DO NOTHING
    RETURNING proposal_id, user_ref, user_handle, choice, voted_at
""")


def _increment_sql(column: str) -> Any:
    return text(f"""
        UPDATE proposals
        SET {column} = {column} + 1
        WHERE id = :id AND status = 'active' AND ends_at > :now
        RETURNING {_COLUMNS}
    """)


# Column names come from this fixed map, never from input
_INCREMENT_SQL = {
    VoteChoice.YES.value: _increment_sql("yes_count"),
    VoteChoice.NO.value: _increment_sql("no_count"),
    VoteChoice.ABSTAIN.value: _increment_sql("abstain_count"),
}

_CLOSE_SQL = text(f"""
    UPDATE proposals
    SET status = 'closed', result = :result, closed_at = :closed_at
    WHERE id = :id
    RETURNING {_COLUMNS}
""")

_LIST_ACTIVE_SQL = text(f"""
    SELECT {_COLUMNS},
        (SELECT COUNT(*) FROM proposal_comments c WHERE c.proposal_id = p.id) AS comment_count
    FROM proposals p
    WHERE status = 'active' AND ends_at > :now
    ORDER BY created_at DESC, id DESC
""")

_LIST_ALL_SQL = text(f"""
    SELECT {_COLUMNS},
        (SELECT COUNT(*) FROM proposal_comments c WHERE c.proposal_id = p.id) AS comment_count
    FROM proposals p
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

_LIST_VOTES_SQL = text("""
    SELECT proposal_id, user_ref, user_handle, choice, voted_at
    FROM votes
    WHERE proposal_id = :proposal_id
    ORDER BY voted_at ASC
""")

_HAS_VOTED_SQL = text("""
    SELECT 1 FROM votes
    WHERE proposal_id = :proposal_id AND user_ref = CAST(:user_ref AS UUID)
""")

_INSERT_COMMENT_SQL = text("""
    INSERT INTO proposal_comments (proposal_id, author_ref, author_handle, content)
    VALUES (:proposal_id, CAST(:author_ref AS UUID), :author_handle, :content)
    RETURNING id, proposal_id, author_ref, author_handle, content, created_at
""")

_LIST_COMMENTS_SQL = text("""
    SELECT id, proposal_id, author_ref, author_handle, content, created_at
    FROM proposal_comments
    WHERE proposal_id = :proposal_id
    ORDER BY created_at DESC, id DESC
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------

def _row_to_proposal(row: Any) -> Proposal:
    return Proposal(
        id=row.id,
        title=row.title,
        description=row.description,
        author_ref=str(row.author_ref),
        author_handle=row.author_handle,
        status=row.status,
        result=row.result,
        yes_count=row.yes_count,
        no_count=row.no_count,
        abstain_count=row.abstain_count,
        ends_at=row.ends_at,
        closed_at=row.closed_at,
        created_at=row.created_at,
        comment_count=int(getattr(row, "comment_count", 0) or 0),
    )


def _row_to_vote(row: Any) -> Vote:
    return Vote(
        proposal_id=row.proposal_id,
        user_ref=str(row.user_ref),
        user_handle=row.user_handle,
        choice=row.choice,
        voted_at=row.voted_at,
    )


def _row_to_comment(row: Any) -> Comment:
    return Comment(
        id=row.id,
        proposal_id=row.proposal_id,
        author_ref=str(row.author_ref),
        author_handle=row.author_handle,
        content=row.content,
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

class ProposalRepository:
    """Concrete repository for proposals, votes and comments."""

    async def create_proposal(
        self,
        db: AsyncSession,
        title: str,
        description: str,
        author_ref: str,
        author_handle: str,
        ends_at: datetime,
    ) -> Proposal:
        result = await db.execute(
            _INSERT_PROPOSAL_SQL,
            {
                "title": title,
                "description": description,
                "author_ref": author_ref,
                "author_handle": author_handle,
                "ends_at": ends_at,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Proposal insert returned no rows")
        return _row_to_proposal(row)

    async def get_by_id(self, db: AsyncSession, proposal_id: int) -> Proposal | None:
        row = (await db.execute(_GET_SQL, {"id": proposal_id})).fetchone()
        return _row_to_proposal(row) if row else None

    async def get_for_update(self, db: AsyncSession, proposal_id: int) -> Proposal | None:
        row = (await db.execute(_GET_FOR_UPDATE_SQL, {"id": proposal_id})).fetchone()
        return _row_to_proposal(row) if row else None

    async def insert_vote(
        self,
        db: AsyncSession,
        proposal_id: int,
        user_ref: str,
        user_handle: str,
        choice: str,
    ) -> Vote | None:
        result = await db.execute(
            _INSERT_VOTE_SQL,
            {
                "proposal_id": proposal_id,
                "user_ref": user_ref,
                "user_handle": user_handle,
                "choice": choice,
            },
        )
        row = result.fetchone()
        return _row_to_vote(row) if row else None

    async def increment_count(
        self, db: AsyncSession, proposal_id: int, choice: str, now: datetime
    ) -> Proposal | None:
        stmt = _INCREMENT_SQL[choice]
        row = (await db.execute(stmt, {"id": proposal_id, "now": now})).fetchone()
        return _row_to_proposal(row) if row else None

    async def close(
        self, db: AsyncSession, proposal_id: int, result: str, closed_at: datetime
    ) -> Proposal:
        row = (
            await db.execute(
                _CLOSE_SQL, {"id": proposal_id, "result": result, "closed_at": closed_at}
            )
        ).fetchone()
        if row is None:
            raise ProposalNotFoundError(proposal_id)
        return _row_to_proposal(row)

    async def list_active(self, db: AsyncSession, now: datetime) -> list[Proposal]:
        result = await db.execute(_LIST_ACTIVE_SQL, {"now": now})
        return [_row_to_proposal(row) for row in result.fetchall()]

    async def list_all(self, db: AsyncSession, limit: int) -> list[Proposal]:
        result = await db.execute(_LIST_ALL_SQL, {"limit": limit})
        return [_row_to_proposal(row) for row in result.fetchall()]

    async def list_votes(self, db: AsyncSession, proposal_id: int) -> list[Vote]:
        result = await db.execute(_LIST_VOTES_SQL, {"proposal_id": proposal_id})
        return [_row_to_vote(row) for row in result.fetchall()]

    async def has_voted(self, db: AsyncSession, proposal_id: int, user_ref: str) -> bool:
        row = (
            await db.execute(
                _HAS_VOTED_SQL, {"proposal_id": proposal_id, "user_ref": user_ref}
            )
        ).fetchone()
        return row is not None

    async def insert_comment(
        self,
        db: AsyncSession,
        proposal_id: int,
        author_ref: str,
        author_handle: str,
        content: str,
    ) -> Comment:
        result = await db.execute(
            _INSERT_COMMENT_SQL,
            {
                "proposal_id": proposal_id,
                "author_ref": author_ref,
                "author_handle": author_handle,
                "content": content,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Comment insert returned no rows")
        return _row_to_comment(row)

    async def list_comments(self, db: AsyncSession, proposal_id: int) -> list[Comment]:
        result = await db.execute(_LIST_COMMENTS_SQL, {"proposal_id": proposal_id})
        return [_row_to_comment(row) for row in result.fetchall()]
