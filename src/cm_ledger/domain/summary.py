"""Summary derivation — pure function of ledger totals and the config snapshot."""

from src.cm_common.cents import percentage_of
from src.cm_config.domain.models import OrgConfig
from src.cm_ledger.domain.models import FinancialSummary, GoalProgress, LedgerTotals


def build_goal(totals: LedgerTotals, config: OrgConfig) -> GoalProgress | None:
    goal = config.donations.goal
    if goal is None or not goal.enabled or goal.target_amount_cents <= 0:
        return None
    return GoalProgress(
        target=goal.target_amount_cents,
        current=totals.total_in,
        percentage=percentage_of(totals.total_in, goal.target_amount_cents),
        description=goal.description,
    )


def build_summary(totals: LedgerTotals, config: OrgConfig) -> FinancialSummary:
    return FinancialSummary(
        total_in=totals.total_in,
        total_out=totals.total_out,
        balance=totals.balance,
        currency=config.currency,
        donation_count=totals.donation_count,
        expense_count=totals.expense_count,
        goal=build_goal(totals, config),
    )
