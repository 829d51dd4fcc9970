"""Domain models for cm_ledger — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.cm_config.domain.models import RewardTier


@dataclass
class Transaction:
    id: int                          # BIGSERIAL
    type: str                        # TransactionType value
    amount: int                      # cents, always positive; direction is carried by type
    currency: str
    status: str                      # TransactionStatus value
    automatic: bool = False
    donor_ref: str | None = None
    donor_display_name: str | None = None
    description: str | None = None
    category: str | None = None
    recipient: str | None = None
    message: str | None = None
    external_ref: str | None = None
    created_at: datetime | None = None


@dataclass
class NewTransaction:
    """Insert payload; id/created_at are assigned by the store."""

    type: str
    amount: int
    currency: str
    status: str
    automatic: bool = False
    donor_ref: str | None = None
    donor_display_name: str | None = None
    description: str | None = None
    category: str | None = None
    recipient: str | None = None
    message: str | None = None
    external_ref: str | None = None


@dataclass
class LedgerTotals:
    """Aggregates over completed transactions only."""

    total_in: int = 0
    total_out: int = 0
    donation_count: int = 0
    expense_count: int = 0

    @property
    def balance(self) -> int:
        return self.total_in - self.total_out


@dataclass
class GoalProgress:
    target: int
    current: int
    percentage: float
    description: str | None = None


@dataclass
class FinancialSummary:
    total_in: int
    total_out: int
    balance: int
    currency: str
    donation_count: int
    expense_count: int
    goal: GoalProgress | None = None


@dataclass
class DonorStanding:
    """A member's cumulative completed donations and the badge they earn."""

    handle: str
    total_donated: int
    currency: str
    badge: RewardTier | None = None
