"""Pure governance rules — no I/O.

decide_result: quorum counts yes + no only (abstentions never help reach it).
Below quorum -> no_quorum; strict majority of yes -> approved; otherwise denied,
so a tie is denied.

GovernancePolicy answers who may create proposals and who may vote or comment,
given the voting settings from the configuration snapshot and the member's
cumulative completed donations (cents).
"""

from src.cm_common.enums import ProposalResult
from src.cm_config.domain.models import VotingConfig
from src.cm_identity.domain.models import Identity


def decide_result(yes: int, no: int, min_votes: int) -> ProposalResult:
    if yes + no < min_votes:
        return ProposalResult.NO_QUORUM
    if yes > no:
        return ProposalResult.APPROVED
    return ProposalResult.DENIED


class GovernancePolicy:
    def __init__(self, settings: VotingConfig) -> None:
        self._settings = settings

    @property
    def create_gate_applies(self) -> bool:
        return self._settings.pay_to_create.enabled

    @property
    def vote_gate_applies(self) -> bool:
        return self._settings.pay_to_vote.enabled

    def can_create_proposal(self, member: Identity, total_donated: int) -> bool:
        if self._settings.create_proposal_role == "admin" and not member.is_admin:
            return False
        # Admins bypass the donation requirement for proposal creation
        if member.is_admin:
            return True
        gate = self._settings.pay_to_create
        return not gate.enabled or total_donated >= gate.amount_cents

    def can_vote(self, member: Identity, total_donated: int) -> bool:
        # No admin exemption: the vote gate applies to everyone
        gate = self._settings.pay_to_vote
        return not gate.enabled or total_donated >= gate.amount_cents

    def create_denial_reason(self, member: Identity) -> str:
        if self._settings.create_proposal_role == "admin" and not member.is_admin:
            return "only administrators may create proposals"
        return (
            f"a cumulative donation of at least {self._settings.pay_to_create.amount_cents} "
            "cents is required to create proposals"
        )

    def vote_denial_reason(self) -> str:
        return (
            f"a cumulative donation of at least {self._settings.pay_to_vote.amount_cents} "
            "cents is required to vote or comment"
        )
