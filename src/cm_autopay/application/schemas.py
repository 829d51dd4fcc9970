"""Pydantic schemas for cm_autopay API."""

from pydantic import BaseModel

from src.cm_autopay.domain.models import (
    AutoPaymentRunResult,
    AutoPaymentStatus,
    PaymentResult,
)


class PaymentResultOut(BaseModel):
    payment_id: str
    amount_cents: int
    outcome: str
    transaction_id: int | None
    required_cents: int | None
    available_cents: int | None
    error: str | None

    @classmethod
    def from_domain(cls, r: PaymentResult) -> "PaymentResultOut":
        return cls(
            payment_id=r.payment_id,
            amount_cents=r.amount,
            outcome=r.outcome,
            transaction_id=r.transaction_id,
            required_cents=r.required,
            available_cents=r.available,
            error=r.error,
        )


class RunResultResponse(BaseModel):
    enabled: bool
    processed: int
    failed: int
    results: list[PaymentResultOut]

    @classmethod
    def from_domain(cls, r: AutoPaymentRunResult) -> "RunResultResponse":
        return cls(
            enabled=r.enabled,
            processed=r.processed,
            failed=r.failed,
            results=[PaymentResultOut.from_domain(x) for x in r.results],
        )


class PaymentStatusOut(BaseModel):
    payment_id: str
    description: str
    amount_cents: int
    recipient: str | None
    category: str
    can_pay: bool


class StatusResponse(BaseModel):
    enabled: bool
    payments_count: int
    total_required_cents: int
    current_balance_cents: int
    can_execute: bool
    payments: list[PaymentStatusOut]

    @classmethod
    def from_domain(cls, s: AutoPaymentStatus) -> "StatusResponse":
        return cls(
            enabled=s.enabled,
            payments_count=s.payments_count,
            total_required_cents=s.total_required,
            current_balance_cents=s.current_balance,
            can_execute=s.can_execute,
            payments=[
                PaymentStatusOut(
                    payment_id=p.payment_id,
                    description=p.description,
                    amount_cents=p.amount,
                    recipient=p.recipient,
                    category=p.category,
                    can_pay=p.can_pay,
                )
                for p in s.payments
            ],
        )
