"""Unit tests for GovernanceService using a mock repository."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.cm_common.enums import AuditAction, ProposalResult, VoteChoice
from src.cm_common.errors import (
    DuplicateVoteError,
    ModuleDisabledError,
    PolicyDeniedError,
    ProposalAlreadyClosedError,
    ProposalNotFoundError,
    VotingPeriodEndedError,
)
from src.cm_config.application.store import parse_config
from src.cm_config.domain.models import OrgConfig
from src.cm_identity.domain.models import Identity
from src.cm_notify.dispatcher import PROPOSAL_CLOSED, PROPOSAL_CREATED
from src.cm_voting.application.service import GovernanceService
from src.cm_voting.domain.models import Comment, Proposal, Vote

_VOTER = Identity(id="m1", email="bob@example.org", handle="@bob_000001", role="member")
_ADMIN = Identity(id="a1", email="root@example.org", handle="@root_000002", role="admin")


def _make_proposal(
    proposal_id: int = 1,
    status: str = "active",
    yes: int = 0,
    no: int = 0,
    abstain: int = 0,
    ends_in: timedelta = timedelta(days=3),
    result: str = "none",
) -> Proposal:
    now = datetime.now(UTC)
    return Proposal(
        id=proposal_id,
        title="Buy a new server",
        description="The old one is dying",
        author_ref="m1",
        author_handle="@bob_000001",
        status=status,
        result=result,
        yes_count=yes,
        no_count=no,
        abstain_count=abstain,
        ends_at=now + ends_in,
        closed_at=now if status == "closed" else None,
        created_at=now - timedelta(days=1),
    )


def _make_vote(choice: str = "yes") -> Vote:
    return Vote(
        proposal_id=1,
        user_ref="m1",
        user_handle="@bob_000001",
        choice=choice,
        voted_at=datetime.now(UTC),
    )


def _make_service(
    repo: AsyncMock, total_donated: int = 0
) -> tuple[GovernanceService, AsyncMock, AsyncMock, MagicMock]:
    transactions = AsyncMock()
    transactions.total_donated.return_value = total_donated
    audit = AsyncMock()
    dispatcher = MagicMock()
    svc = GovernanceService(
        repo=repo, transactions=transactions, audit=audit, dispatcher=dispatcher
    )
    return svc, transactions, audit, dispatcher


class TestCreateProposal:
    async def test_creates_with_duration(self) -> None:
        mock_repo = AsyncMock()
        mock_repo.create_proposal.return_value = _make_proposal()
        svc, _, audit, dispatcher = _make_service(mock_repo)
        config = parse_config({"voting": {"duration_days": 3}})

        before = datetime.now(UTC)
        await svc.create_proposal(AsyncMock(), config, "Buy a server", "Details", _VOTER)

        ends_at = mock_repo.create_proposal.await_args.kwargs["ends_at"]
        assert timedelta(days=3) <= ends_at - before < timedelta(days=3, minutes=1)
        assert audit.record.await_args.args[2] == AuditAction.CREATE_PROPOSAL
        assert dispatcher.dispatch.call_args.args[0] == PROPOSAL_CREATED

    async def test_voting_disabled(self) -> None:
        svc, _, _, _ = _make_service(AsyncMock())
        config = parse_config({"voting": {"enabled": False}})
        with pytest.raises(ModuleDisabledError):
            await svc.create_proposal(AsyncMock(), config, "Title", "Body", _VOTER)

    async def test_pay_to_create_denied(self) -> None:
        mock_repo = AsyncMock()
        svc, transactions, _, _ = _make_service(mock_repo, total_donated=500)
        config = parse_config(
            {"voting": {"pay_to_create": {"enabled": True, "amount_cents": 2000}}}
        )

        with pytest.raises(PolicyDeniedError):
            await svc.create_proposal(AsyncMock(), config, "Title", "Body", _VOTER)

        transactions.total_donated.assert_awaited_once()
        mock_repo.create_proposal.assert_not_awaited()

    async def test_admin_only_role(self) -> None:
        svc, _, _, _ = _make_service(AsyncMock())
        config = parse_config({"voting": {"create_proposal_role": "admin"}})
        with pytest.raises(PolicyDeniedError):
            await svc.create_proposal(AsyncMock(), config, "Title", "Body", _VOTER)


class TestCastVote:
    async def test_records_vote_and_increments(self) -> None:
        mock_repo = AsyncMock()
        mock_repo.get_by_id.return_value = _make_proposal()
        mock_repo.insert_vote.return_value = _make_vote("no")
        mock_repo.increment_count.return_value = _make_proposal(no=1)
        svc, _, audit, _ = _make_service(mock_repo)
        db = AsyncMock()

        vote = await svc.cast_vote(db, OrgConfig(), 1, _VOTER, VoteChoice.NO)

        assert vote.choice == "no"
        assert mock_repo.increment_count.await_args.args[2] == "no"
        args = audit.record.await_args
        assert args.args[2] == AuditAction.CAST_VOTE
        # The choice is not disclosed in the audit trail
        assert args.kwargs.get("details") is None
        db.commit.assert_awaited_once()

    async def test_duplicate_vote(self) -> None:
        mock_repo = AsyncMock()
        mock_repo.get_by_id.return_value = _make_proposal()
        mock_repo.insert_vote.return_value = None
        svc, _, audit, _ = _make_service(mock_repo)
        db = AsyncMock()

        with pytest.raises(DuplicateVoteError):
            await svc.cast_vote(db, OrgConfig(), 1, _VOTER, VoteChoice.YES)

        mock_repo.increment_count.assert_not_awaited()
        audit.record.assert_not_awaited()
        db.rollback.assert_awaited_once()

    async def test_missing_proposal(self) -> None:
        mock_repo = AsyncMock()
        mock_repo.get_by_id.return_value = None
        svc, _, _, _ = _make_service(mock_repo)

        with pytest.raises(ProposalNotFoundError):
            await svc.cast_vote(AsyncMock(), OrgConfig(), 99, _VOTER, VoteChoice.YES)
        mock_repo.insert_vote.assert_not_awaited()

    async def test_closed_proposal(self) -> None:
        mock_repo = AsyncMock()
        mock_repo.get_by_id.return_value = _make_proposal(status="closed")
        svc, _, _, _ = _make_service(mock_repo)

        with pytest.raises(ProposalAlreadyClosedError):
            await svc.cast_vote(AsyncMock(), OrgConfig(), 1, _VOTER, VoteChoice.YES)
        mock_repo.insert_vote.assert_not_awaited()

    async def test_after_ends_at(self) -> None:
        mock_repo = AsyncMock()
        mock_repo.get_by_id.return_value = _make_proposal(ends_in=timedelta(seconds=-1))
        svc, _, _, _ = _make_service(mock_repo)

        with pytest.raises(VotingPeriodEndedError):
            await svc.cast_vote(AsyncMock(), OrgConfig(), 1, _VOTER, VoteChoice.YES)

    async def test_closed_between_read_and_update(self) -> None:
        mock_repo = AsyncMock()
        mock_repo.get_by_id.side_effect = [_make_proposal(), _make_proposal(status="closed")]
        mock_repo.insert_vote.return_value = _make_vote()
        mock_repo.increment_count.return_value = None
        svc, _, audit, _ = _make_service(mock_repo)
        db = AsyncMock()

        with pytest.raises(ProposalAlreadyClosedError):
            await svc.cast_vote(db, OrgConfig(), 1, _VOTER, VoteChoice.YES)

        # The inserted vote is discarded together with the failed increment
        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()
        audit.record.assert_not_awaited()

    async def test_pay_to_vote_denied(self) -> None:
        mock_repo = AsyncMock()
        svc, _, _, _ = _make_service(mock_repo, total_donated=0)
        config = parse_config({"voting": {"pay_to_vote": {"enabled": True, "amount_cents": 100}}})

        with pytest.raises(PolicyDeniedError):
            await svc.cast_vote(AsyncMock(), config, 1, _ADMIN, VoteChoice.YES)
        mock_repo.get_by_id.assert_not_awaited()


class TestCloseProposal:
    async def _close(self, proposal: Proposal, config: OrgConfig = OrgConfig()):  # type: ignore[no-untyped-def]
        mock_repo = AsyncMock()
        mock_repo.get_for_update.return_value = proposal

        async def _close_row(db, proposal_id, result, closed_at):  # type: ignore[no-untyped-def]
            closed = _make_proposal(
                proposal_id,
                status="closed",
                yes=proposal.yes_count,
                no=proposal.no_count,
                abstain=proposal.abstain_count,
                result=result,
            )
            return closed

        mock_repo.close.side_effect = _close_row
        svc, _, audit, dispatcher = _make_service(mock_repo)
        closed = await svc.close_proposal(AsyncMock(), config, proposal.id, _ADMIN)
        return closed, mock_repo, audit, dispatcher

    async def test_no_quorum(self) -> None:
        closed, _, audit, _ = await self._close(_make_proposal(yes=3, no=1, abstain=4))
        assert closed.result == ProposalResult.NO_QUORUM
        details = audit.record.await_args.kwargs["details"]
        assert details["result"] == "no_quorum"
        assert details["abstain"] == 4

    async def test_tie_denied(self) -> None:
        closed, _, _, dispatcher = await self._close(_make_proposal(yes=3, no=3))
        assert closed.result == ProposalResult.DENIED
        assert dispatcher.dispatch.call_args.args[0] == PROPOSAL_CLOSED

    async def test_approved_with_lower_quorum(self) -> None:
        config = parse_config({"voting": {"quorum_min_votes": 2}})
        closed, mock_repo, _, _ = await self._close(_make_proposal(yes=2, no=1), config)
        assert closed.result == ProposalResult.APPROVED
        assert mock_repo.close.await_args.args[2] == "approved"

    async def test_already_closed_not_reevaluated(self) -> None:
        mock_repo = AsyncMock()
        mock_repo.get_for_update.return_value = _make_proposal(status="closed", result="approved")
        svc, _, audit, _ = _make_service(mock_repo)
        db = AsyncMock()

        with pytest.raises(ProposalAlreadyClosedError):
            await svc.close_proposal(db, OrgConfig(), 1, _ADMIN)

        mock_repo.close.assert_not_awaited()
        audit.record.assert_not_awaited()
        db.rollback.assert_awaited_once()

    async def test_missing(self) -> None:
        mock_repo = AsyncMock()
        mock_repo.get_for_update.return_value = None
        svc, _, _, _ = _make_service(mock_repo)

        with pytest.raises(ProposalNotFoundError):
            await svc.close_proposal(AsyncMock(), OrgConfig(), 5, _ADMIN)


class TestCommentsAndReads:
    async def test_add_comment(self) -> None:
        mock_repo = AsyncMock()
        mock_repo.get_by_id.return_value = _make_proposal()
        mock_repo.insert_comment.return_value = Comment(
            id=10, proposal_id=1, author_ref="m1", author_handle="@bob_000001", content="+1"
        )
        svc, _, audit, _ = _make_service(mock_repo)

        comment = await svc.add_comment(AsyncMock(), OrgConfig(), 1, _VOTER, "+1")

        assert comment.id == 10
        assert audit.record.await_args.args[2] == AuditAction.ADD_COMMENT

    async def test_comment_gated_by_pay_to_vote(self) -> None:
        svc, _, _, _ = _make_service(AsyncMock(), total_donated=0)
        config = parse_config({"voting": {"pay_to_vote": {"enabled": True, "amount_cents": 100}}})
        with pytest.raises(PolicyDeniedError):
            await svc.add_comment(AsyncMock(), config, 1, _VOTER, "+1")

    async def test_comment_on_missing_proposal(self) -> None:
        mock_repo = AsyncMock()
        mock_repo.get_by_id.return_value = None
        svc, _, _, _ = _make_service(mock_repo)
        with pytest.raises(ProposalNotFoundError):
            await svc.add_comment(AsyncMock(), OrgConfig(), 1, _VOTER, "+1")

    async def test_detail_includes_votes_and_comments(self) -> None:
        mock_repo = AsyncMock()
        mock_repo.get_by_id.return_value = _make_proposal(yes=1)
        mock_repo.list_votes.return_value = [_make_vote()]
        mock_repo.list_comments.return_value = []
        svc, _, _, _ = _make_service(mock_repo)

        detail = await svc.get_proposal_by_id(AsyncMock(), 1)

        assert detail.proposal.vote_count == 1
        assert len(detail.votes) == 1

    async def test_detail_missing(self) -> None:
        mock_repo = AsyncMock()
        mock_repo.get_by_id.return_value = None
        svc, _, _, _ = _make_service(mock_repo)
        with pytest.raises(ProposalNotFoundError):
            await svc.get_proposal_by_id(AsyncMock(), 1)
