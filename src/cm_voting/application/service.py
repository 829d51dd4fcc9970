"""GovernanceService — proposals, votes, comments and closing.

Every mutation is one unit of work: the state change and its audit entry are
committed together, or rolled back together. Policy inputs (role, cumulative
donations) are evaluated against the configuration snapshot passed in by the
caller.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_audit.application.service import AuditService
from src.cm_common.datetime_utils import days_from, utc_now
from src.cm_common.enums import AuditAction, VoteChoice
from src.cm_common.errors import (
    DuplicateVoteError,
    ModuleDisabledError,
    PolicyDeniedError,
    ProposalAlreadyClosedError,
    ProposalNotFoundError,
    VotingPeriodEndedError,
)
from src.cm_config.domain.models import OrgConfig
from src.cm_identity.domain.models import Identity
from src.cm_ledger.application.service import TransactionService
from src.cm_notify.dispatcher import (
    PROPOSAL_CLOSED,
    PROPOSAL_CREATED,
    NotificationDispatcher,
    get_dispatcher,
)
from src.cm_voting.domain.models import Comment, Proposal, ProposalDetail, Vote
from src.cm_voting.domain.repository import ProposalRepositoryProtocol
from src.cm_voting.domain.rules import GovernancePolicy, decide_result
from src.cm_voting.infrastructure.persistence import ProposalRepository

logger = logging.getLogger(__name__)


class GovernanceService:
    def __init__(
        self,
        repo: ProposalRepositoryProtocol | None = None,
        transactions: TransactionService | None = None,
        audit: AuditService | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self._repo: ProposalRepositoryProtocol = repo or ProposalRepository()
        self._transactions = transactions or TransactionService()
        self._audit = audit or AuditService()
        self._dispatcher = dispatcher or get_dispatcher()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_active_proposals(self, db: AsyncSession) -> list[Proposal]:
        return await self._repo.list_active(db, utc_now())

    async def get_all_proposals(self, db: AsyncSession, limit: int = 50) -> list[Proposal]:
        return await self._repo.list_all(db, limit)

    async def get_proposal_by_id(self, db: AsyncSession, proposal_id: int) -> ProposalDetail:
        proposal = await self._repo.get_by_id(db, proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(proposal_id)
        votes = await self._repo.list_votes(db, proposal_id)
        comments = await self._repo.list_comments(db, proposal_id)
        return ProposalDetail(proposal=proposal, votes=votes, comments=comments)

    async def has_user_voted(self, db: AsyncSession, proposal_id: int, user_ref: str) -> bool:
        return await self._repo.has_voted(db, proposal_id, user_ref)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_proposal(
        self,
        db: AsyncSession,
        config: OrgConfig,
        title: str,
        description: str,
        author: Identity,
    ) -> Proposal:
        settings = config.voting
        if not settings.enabled:
            raise ModuleDisabledError("voting")

        policy = GovernancePolicy(settings)
        total = 0
        if policy.create_gate_applies and not author.is_admin:
            total = await self._transactions.total_donated(db, author.id)
        if not policy.can_create_proposal(author, total):
            raise PolicyDeniedError(policy.create_denial_reason(author))

        now = utc_now()
        try:
            proposal = await self._repo.create_proposal(
                db,
                title=title,
                description=description,
                author_ref=author.id,
                author_handle=author.handle,
                ends_at=days_from(now, settings.duration_days),
            )
            await self._audit.record(
                db,
                config,
                AuditAction.CREATE_PROPOSAL,
                author.handle,
                target=str(proposal.id),
                details={"title": title, "ends_at": proposal.ends_at.isoformat()},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Proposal %s created by %s", proposal.id, author.handle)
        self._dispatcher.dispatch(
            PROPOSAL_CREATED,
            {
                "proposal_id": proposal.id,
                "title": proposal.title,
                "author_handle": proposal.author_handle,
                "ends_at": proposal.ends_at.isoformat(),
            },
        )
        return proposal

    async def cast_vote(
        self,
        db: AsyncSession,
        config: OrgConfig,
        proposal_id: int,
        voter: Identity,
        choice: VoteChoice,
    ) -> Vote:
        settings = config.voting
        if not settings.enabled:
            raise ModuleDisabledError("voting")
        await self._check_participation(db, GovernancePolicy(settings), voter)

        now = utc_now()
        try:
            self._raise_if_not_open(await self._repo.get_by_id(db, proposal_id), proposal_id, now)

            vote = await self._repo.insert_vote(
                db, proposal_id, voter.id, voter.handle, choice.value
            )
            if vote is None:
                raise DuplicateVoteError(proposal_id)

            updated = await self._repo.increment_count(db, proposal_id, choice.value, now)
            if updated is None:
                # Closed or expired between the read and the guarded UPDATE
                self._raise_if_not_open(
                    await self._repo.get_by_id(db, proposal_id), proposal_id, now
                )
                raise ProposalAlreadyClosedError(proposal_id)

            # The choice itself stays out of the audit trail
            await self._audit.record(
                db,
                config,
                AuditAction.CAST_VOTE,
                voter.handle,
                target=str(proposal_id),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Vote recorded on proposal %s by %s", proposal_id, voter.handle)
        return vote

    async def add_comment(
        self,
        db: AsyncSession,
        config: OrgConfig,
        proposal_id: int,
        author: Identity,
        content: str,
    ) -> Comment:
        settings = config.voting
        if not settings.enabled:
            raise ModuleDisabledError("voting")
        await self._check_participation(db, GovernancePolicy(settings), author)

        try:
            if await self._repo.get_by_id(db, proposal_id) is None:
                raise ProposalNotFoundError(proposal_id)
            comment = await self._repo.insert_comment(
                db, proposal_id, author.id, author.handle, content
            )
            await self._audit.record(
                db,
                config,
                AuditAction.ADD_COMMENT,
                author.handle,
                target=str(proposal_id),
                details={"comment_id": comment.id},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return comment

    async def close_proposal(
        self,
        db: AsyncSession,
        config: OrgConfig,
        proposal_id: int,
        actor: Identity,
    ) -> Proposal:
        """Close a proposal and decide its result exactly once.

        The row is locked FOR UPDATE so that of two concurrent closes one decides
        and the other sees status=closed and fails with ProposalAlreadyClosedError.
        """
        min_votes = config.voting.quorum_min_votes
        try:
            proposal = await self._repo.get_for_update(db, proposal_id)
            if proposal is None:
                raise ProposalNotFoundError(proposal_id)
            if proposal.is_closed:
                raise ProposalAlreadyClosedError(proposal_id)

            result = decide_result(proposal.yes_count, proposal.no_count, min_votes)
            closed = await self._repo.close(db, proposal_id, result.value, utc_now())
            await self._audit.record(
                db,
                config,
                AuditAction.CLOSE_PROPOSAL,
                actor.handle,
                target=str(proposal_id),
                details={
                    "result": result.value,
                    "yes": closed.yes_count,
                    "no": closed.no_count,
                    "abstain": closed.abstain_count,
                    "quorum_min_votes": min_votes,
                },
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Proposal %s closed by %s: %s (yes=%d no=%d abstain=%d)",
            proposal_id,
            actor.handle,
            closed.result,
            closed.yes_count,
            closed.no_count,
            closed.abstain_count,
        )
        self._dispatcher.dispatch(
            PROPOSAL_CLOSED,
            {"proposal_id": proposal_id, "title": closed.title, "result": closed.result},
        )
        return closed

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _check_participation(
        self, db: AsyncSession, policy: GovernancePolicy, member: Identity
    ) -> None:
        total = 0
        if policy.vote_gate_applies:
            total = await self._transactions.total_donated(db, member.id)
        if not policy.can_vote(member, total):
            raise PolicyDeniedError(policy.vote_denial_reason())

    @staticmethod
    def _raise_if_not_open(proposal: Proposal | None, proposal_id: int, now: datetime) -> None:
        if proposal is None:
            raise ProposalNotFoundError(proposal_id)
        if proposal.is_closed:
            raise ProposalAlreadyClosedError(proposal_id)
        if proposal.ends_at <= now:
            raise VotingPeriodEndedError(proposal_id)
