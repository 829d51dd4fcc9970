"""Domain models for cm_autopay — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field

from src.cm_common.enums import AutoPaymentOutcome


@dataclass
class PaymentResult:
    payment_id: str
    amount: int                      # cents
    outcome: str                     # AutoPaymentOutcome value
    transaction_id: int | None = None
    required: int | None = None      # set on insufficient_balance
    available: int | None = None     # set on insufficient_balance
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == AutoPaymentOutcome.PAID


@dataclass
class AutoPaymentRunResult:
    enabled: bool
    processed: int = 0               # successful payments
    failed: int = 0                  # insufficient balance + errors
    results: list[PaymentResult] = field(default_factory=list)


@dataclass
class PaymentStatus:
    payment_id: str
    description: str
    amount: int
    recipient: str | None
    category: str
    can_pay: bool


@dataclass
class AutoPaymentStatus:
    enabled: bool
    payments_count: int = 0
    total_required: int = 0
    current_balance: int = 0
    can_execute: bool = False
    payments: list[PaymentStatus] = field(default_factory=list)
