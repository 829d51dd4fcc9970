"""AutoPaymentScheduler — single-flight automatic payment run.

Payments are processed sequentially and the balance is re-aggregated before
each one, so an earlier payment in the same run reduces the funds available to
a later one. Every payment ends in exactly one outcome (paid,
insufficient_balance, error) and one audit entry; a failing payment never stops
the run.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_audit.application.service import SYSTEM_ACTOR, AuditService
from src.cm_autopay.domain.models import (
    AutoPaymentRunResult,
    AutoPaymentStatus,
    PaymentResult,
    PaymentStatus,
)
from src.cm_autopay.domain.repository import RunLeaseProtocol
from src.cm_autopay.infrastructure.lease import RedisRunLease
from src.cm_common.cents import cents_to_display
from src.cm_common.enums import AuditAction, AutoPaymentOutcome
from src.cm_common.errors import InsufficientBalanceError, SchedulerBusyError
from src.cm_config.domain.models import AutoPaymentConfig, OrgConfig
from src.cm_ledger.application.service import SummaryService, TransactionService
from src.cm_notify.dispatcher import (
    AUTOPAY_RUN_FINISHED,
    NotificationDispatcher,
    get_dispatcher,
)

logger = logging.getLogger(__name__)


class AutoPaymentScheduler:
    def __init__(
        self,
        transactions: TransactionService | None = None,
        summary: SummaryService | None = None,
        audit: AuditService | None = None,
        lease: RunLeaseProtocol | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self._audit = audit or AuditService()
        self._transactions = transactions or TransactionService(audit=self._audit)
        self._summary = summary or SummaryService()
        self._lease: RunLeaseProtocol = lease or RedisRunLease()
        self._dispatcher = dispatcher or get_dispatcher()

    async def run(self, db: AsyncSession, config: OrgConfig) -> AutoPaymentRunResult:
        token = await self._lease.acquire()
        if token is None:
            logger.warning("Automatic payment run rejected: another run is in progress")
            raise SchedulerBusyError()
        try:
            result = await self._run(db, config)
        finally:
            await self._lease.release(token)

        if result.results:
            self._dispatcher.dispatch(
                AUTOPAY_RUN_FINISHED,
                {"processed": result.processed, "failed": result.failed},
            )
        return result

    async def _run(self, db: AsyncSession, config: OrgConfig) -> AutoPaymentRunResult:
        cron = config.cron
        if not cron.enabled or not cron.auto_payments.enabled:
            logger.info("Automatic payments disabled; nothing to run")
            return AutoPaymentRunResult(enabled=False)

        payments = cron.auto_payments.payments
        if not payments:
            logger.info("No automatic payments configured")
            return AutoPaymentRunResult(enabled=True)

        results = [await self._process(db, config, p) for p in payments]
        processed = sum(1 for r in results if r.succeeded)
        failed = len(results) - processed
        logger.info("Automatic payment run finished: %d paid, %d failed", processed, failed)
        return AutoPaymentRunResult(
            enabled=True, processed=processed, failed=failed, results=results
        )

    async def _process(
        self, db: AsyncSession, config: OrgConfig, payment: AutoPaymentConfig
    ) -> PaymentResult:
        currency = config.currency
        try:
            available = await self._summary.get_balance(db)
            if available < payment.amount_cents:
                return await self._reject(db, config, payment, available)

            tx = await self._transactions.record_automatic_payment(db, config, payment)
            logger.info(
                "Automatic payment %s paid: %s - %s",
                payment.id,
                cents_to_display(payment.amount_cents, currency),
                payment.description,
            )
            return PaymentResult(
                payment_id=payment.id,
                amount=payment.amount_cents,
                outcome=AutoPaymentOutcome.PAID.value,
                transaction_id=tx.id,
            )
        except Exception as e:
            logger.exception("Automatic payment %s failed", payment.id)
            await db.rollback()
            await self._record_error(db, config, payment, str(e))
            return PaymentResult(
                payment_id=payment.id,
                amount=payment.amount_cents,
                outcome=AutoPaymentOutcome.ERROR.value,
                error=str(e),
            )

    async def _record_error(
        self, db: AsyncSession, config: OrgConfig, payment: AutoPaymentConfig, error: str
    ) -> None:
        # The run must go on even when the error entry itself cannot be written
        try:
            await self._audit.record(
                db,
                config,
                AuditAction.CRON_PAYMENT_ERROR,
                SYSTEM_ACTOR,
                target=payment.id,
                details={"error": error},
            )
            await db.commit()
        except Exception:
            logger.exception("Could not audit error for automatic payment %s", payment.id)
            await db.rollback()

    async def _reject(
        self,
        db: AsyncSession,
        config: OrgConfig,
        payment: AutoPaymentConfig,
        available: int,
    ) -> PaymentResult:
        err = InsufficientBalanceError(payment.amount_cents, available)
        await self._audit.record(
            db,
            config,
            AuditAction.CRON_PAYMENT_FAILED,
            SYSTEM_ACTOR,
            target=payment.id,
            details={
                "reason": "insufficient balance",
                "required": payment.amount_cents,
                "available": available,
            },
        )
        await db.commit()
        logger.warning("Automatic payment %s skipped: %s", payment.id, err.message)
        return PaymentResult(
            payment_id=payment.id,
            amount=payment.amount_cents,
            outcome=AutoPaymentOutcome.INSUFFICIENT_BALANCE.value,
            required=payment.amount_cents,
            available=available,
            error=err.message,
        )

    async def status(self, db: AsyncSession, config: OrgConfig) -> AutoPaymentStatus:
        """Read-only preview: which configured payments the current balance covers."""
        cron = config.cron
        if not cron.enabled:
            return AutoPaymentStatus(enabled=False)

        payments = cron.auto_payments.payments
        balance = await self._summary.get_balance(db)
        total_required = sum(p.amount_cents for p in payments)
        return AutoPaymentStatus(
            enabled=cron.auto_payments.enabled,
            payments_count=len(payments),
            total_required=total_required,
            current_balance=balance,
            can_execute=balance >= total_required,
            payments=[
                PaymentStatus(
                    payment_id=p.id,
                    description=p.description,
                    amount=p.amount_cents,
                    recipient=p.recipient,
                    category=p.category,
                    can_pay=balance >= p.amount_cents,
                )
                for p in payments
            ],
        )
