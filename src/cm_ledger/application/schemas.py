"""Pydantic schemas and cursor utilities for cm_ledger API."""

import base64
import json

from pydantic import BaseModel, Field

from src.cm_common.cents import MAX_AMOUNT_CENTS, cents_to_display
from src.cm_common.enums import TransactionType
from src.cm_ledger.domain.models import DonorStanding, FinancialSummary, Transaction

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except Exception:
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class DonationRequest(BaseModel):
    amount_cents: int = Field(..., le=MAX_AMOUNT_CENTS, description="Donation amount in cents")
    message: str | None = Field(None, max_length=500)
    external_ref: str | None = Field(
        None, max_length=128, description="Gateway reference; replays are idempotent"
    )
    pending: bool = Field(False, description="Record as pending until settlement confirms it")


class ExpenseRequest(BaseModel):
    amount_cents: int = Field(..., le=MAX_AMOUNT_CENTS, description="Expense amount in cents")
    description: str = Field(..., min_length=1, max_length=500)
    category: str = Field("other", min_length=1, max_length=50)
    recipient: str | None = Field(None, max_length=200)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class TransactionItem(BaseModel):
    id: int
    type: str
    amount_cents: int
    amount_display: str
    currency: str
    status: str
    automatic: bool
    donor_display_name: str | None
    description: str | None
    category: str | None
    recipient: str | None
    message: str | None
    created_at: str  # ISO8601 string

    @classmethod
    def from_domain(cls, t: Transaction) -> "TransactionItem":
        return cls(
            id=t.id,
            type=t.type,
            amount_cents=t.amount,
            amount_display=cents_to_display(
                t.amount if t.type == TransactionType.IN else -t.amount, t.currency
            ),
            currency=t.currency,
            status=t.status,
            automatic=t.automatic,
            donor_display_name=t.donor_display_name,
            description=t.description,
            category=t.category,
            recipient=t.recipient,
            message=t.message,
            created_at=t.created_at.isoformat() if t.created_at else "",
        )


class RecordedTransaction(BaseModel):
    transaction: TransactionItem
    created: bool  # False when external_ref replayed an existing row


class TransactionPage(BaseModel):
    items: list[TransactionItem]
    next_cursor: str | None
    has_more: bool


class GoalOut(BaseModel):
    target_cents: int
    current_cents: int
    percentage: float
    description: str | None


class SummaryResponse(BaseModel):
    total_in_cents: int
    total_in_display: str
    total_out_cents: int
    total_out_display: str
    balance_cents: int
    balance_display: str
    currency: str
    donation_count: int
    expense_count: int
    goal: GoalOut | None

    @classmethod
    def from_domain(cls, s: FinancialSummary) -> "SummaryResponse":
        goal = None
        if s.goal is not None:
            goal = GoalOut(
                target_cents=s.goal.target,
                current_cents=s.goal.current,
                percentage=s.goal.percentage,
                description=s.goal.description,
            )
        return cls(
            total_in_cents=s.total_in,
            total_in_display=cents_to_display(s.total_in, s.currency),
            total_out_cents=s.total_out,
            total_out_display=cents_to_display(s.total_out, s.currency),
            balance_cents=s.balance,
            balance_display=cents_to_display(s.balance, s.currency),
            currency=s.currency,
            donation_count=s.donation_count,
            expense_count=s.expense_count,
            goal=goal,
        )


class BadgeOut(BaseModel):
    tag: str
    color: str
    amount_cents: int


class DonorStandingResponse(BaseModel):
    handle: str
    total_donated_cents: int
    total_donated_display: str
    badge: BadgeOut | None

    @classmethod
    def from_domain(cls, s: DonorStanding) -> "DonorStandingResponse":
        badge = None
        if s.badge is not None:
            badge = BadgeOut(
                tag=s.badge.tag, color=s.badge.color, amount_cents=s.badge.amount_cents
            )
        return cls(
            handle=s.handle,
            total_donated_cents=s.total_donated,
            total_donated_display=cents_to_display(s.total_donated, s.currency),
            badge=badge,
        )
