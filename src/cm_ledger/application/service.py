"""Ledger application services — transaction recording and summary aggregation.

TransactionService writes single transaction rows together with their audit
entry in one unit of work (commit on success, rollback on any error). It never
rejects a write for insufficient funds: balance gating is the scheduler's job,
done immediately before it asks for an automatic payment.

SummaryService aggregates the ledger on every call. Nothing is memoized; the
scheduler relies on a fresh read before each payment.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_audit.application.service import SYSTEM_ACTOR, AuditService
from src.cm_common.cents import MAX_AMOUNT_CENTS, cents_to_display
from src.cm_common.enums import AuditAction, TransactionStatus, TransactionType
from src.cm_common.errors import (
    AmountOutOfRangeError,
    TransactionNotFoundError,
    TransactionNotPendingError,
)
from src.cm_config.domain.models import AutoPaymentConfig, OrgConfig
from src.cm_identity.domain.models import Identity
from src.cm_ledger.application.schemas import (
    TransactionItem,
    TransactionPage,
    cursor_decode,
    cursor_encode,
)
from src.cm_ledger.domain.models import (
    DonorStanding,
    FinancialSummary,
    NewTransaction,
    Transaction,
)
from src.cm_ledger.domain.repository import LedgerRepositoryProtocol
from src.cm_ledger.domain.rewards import donor_badge
from src.cm_ledger.domain.summary import build_summary
from src.cm_ledger.infrastructure.persistence import LedgerRepository
from src.cm_notify.dispatcher import (
    DONATION_RECORDED,
    NotificationDispatcher,
    get_dispatcher,
)

logger = logging.getLogger(__name__)

AUTOMATIC_DESCRIPTION_PREFIX = "[auto] "


def check_donation_amount(amount_cents: int, config: OrgConfig) -> None:
    """Reject non-positive amounts and amounts outside the configured window."""
    if amount_cents <= 0:
        raise AmountOutOfRangeError(amount_cents, "amount must be positive")
    if amount_cents > MAX_AMOUNT_CENTS:
        raise AmountOutOfRangeError(amount_cents, "amount exceeds the storable maximum")
    settings = config.donations
    currency = config.currency
    if settings.min_amount_cents is not None and amount_cents < settings.min_amount_cents:
        raise AmountOutOfRangeError(
            amount_cents,
            f"minimum donation is {cents_to_display(settings.min_amount_cents, currency)}",
        )
    if settings.max_amount_cents is not None and amount_cents > settings.max_amount_cents:
        raise AmountOutOfRangeError(
            amount_cents,
            f"maximum donation is {cents_to_display(settings.max_amount_cents, currency)}",
        )


def check_expense_amount(amount_cents: int) -> None:
    # Expenses have no configured upper bound, only the storage limit
    if amount_cents <= 0:
        raise AmountOutOfRangeError(amount_cents, "amount must be positive")
    if amount_cents > MAX_AMOUNT_CENTS:
        raise AmountOutOfRangeError(amount_cents, "amount exceeds the storable maximum")


class TransactionService:
    def __init__(
        self,
        repo: LedgerRepositoryProtocol | None = None,
        audit: AuditService | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()
        self._audit = audit or AuditService()
        self._dispatcher = dispatcher or get_dispatcher()

    async def record_donation(
        self,
        db: AsyncSession,
        config: OrgConfig,
        amount_cents: int,
        message: str | None = None,
        donor: Identity | None = None,
        external_ref: str | None = None,
        status: TransactionStatus = TransactionStatus.COMPLETED,
    ) -> tuple[Transaction, bool]:
        """Record an IN transaction. Returns (transaction, created).

        donor=None records an anonymous donation; whether that is allowed is the
        caller's policy decision. A replayed external_ref returns the stored
        transaction with created=False and has no side effects.
        """
        check_donation_amount(amount_cents, config)
        new = NewTransaction(
            type=TransactionType.IN.value,
            amount=amount_cents,
            currency=config.currency,
            status=status.value,
            donor_ref=donor.id if donor else None,
            donor_display_name=donor.handle if donor else None,
            category="donation",
            message=message or None,
            external_ref=external_ref or None,
        )
        try:
            tx, created = await self._repo.insert(db, new)
            if created:
                await self._audit.record(
                    db,
                    config,
                    AuditAction.RECORD_DONATION,
                    SYSTEM_ACTOR,
                    target=donor.handle if donor else "anonymous",
                    details={
                        "transaction_id": tx.id,
                        "amount_cents": amount_cents,
                        "status": tx.status,
                    },
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if not created:
            logger.info("Donation replay ignored: external_ref=%s tx=%s", external_ref, tx.id)
            return tx, False

        logger.info(
            "Donation recorded: %s%s (%s)",
            cents_to_display(amount_cents, config.currency),
            f" from {donor.handle}" if donor else " (anonymous)",
            tx.status,
        )
        if tx.status == TransactionStatus.COMPLETED:
            self._notify_donation(tx)
        return tx, True

    async def record_expense(
        self,
        db: AsyncSession,
        config: OrgConfig,
        amount_cents: int,
        description: str,
        category: str,
        recipient: str | None,
        actor: Identity,
    ) -> Transaction:
        check_expense_amount(amount_cents)
        new = NewTransaction(
            type=TransactionType.OUT.value,
            amount=amount_cents,
            currency=config.currency,
            status=TransactionStatus.COMPLETED.value,
            automatic=False,
            description=description,
            category=category or "other",
            recipient=recipient or None,
        )
        try:
            tx, _ = await self._repo.insert(db, new)
            await self._audit.record(
                db,
                config,
                AuditAction.CREATE_EXPENSE,
                actor.handle,
                target=str(tx.id),
                details={
                    "amount_cents": amount_cents,
                    "description": description,
                    "category": tx.category,
                },
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Expense recorded: %s - %s",
            cents_to_display(amount_cents, config.currency),
            description,
        )
        return tx

    async def record_automatic_payment(
        self,
        db: AsyncSession,
        config: OrgConfig,
        payment: AutoPaymentConfig,
    ) -> Transaction:
        """Scheduler-only: OUT transaction with automatic=True plus CRON_PAYMENT audit."""
        check_expense_amount(payment.amount_cents)
        new = NewTransaction(
            type=TransactionType.OUT.value,
            amount=payment.amount_cents,
            currency=config.currency,
            status=TransactionStatus.COMPLETED.value,
            automatic=True,
            description=f"{AUTOMATIC_DESCRIPTION_PREFIX}{payment.description}",
            category=payment.category or "infrastructure",
            recipient=payment.recipient,
        )
        try:
            tx, _ = await self._repo.insert(db, new)
            await self._audit.record(
                db,
                config,
                AuditAction.CRON_PAYMENT,
                SYSTEM_ACTOR,
                target=payment.id,
                details={
                    "transaction_id": tx.id,
                    "description": payment.description,
                    "amount_cents": payment.amount_cents,
                    "recipient": payment.recipient,
                },
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return tx

    async def confirm_transaction(
        self,
        db: AsyncSession,
        config: OrgConfig,
        transaction_id: int,
        actor_handle: str,
    ) -> Transaction:
        """Settlement: pending -> completed, exactly once."""
        try:
            tx = await self._repo.confirm_pending(db, transaction_id)
            if tx is None:
                existing = await self._repo.get_by_id(db, transaction_id)
                if existing is None:
                    raise TransactionNotFoundError(transaction_id)
                raise TransactionNotPendingError(transaction_id, existing.status)
            await self._audit.record(
                db,
                config,
                AuditAction.CONFIRM_TRANSACTION,
                actor_handle,
                target=str(tx.id),
                details={"amount_cents": tx.amount, "type": tx.type},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Transaction %s confirmed by %s", tx.id, actor_handle)
        if tx.type == TransactionType.IN:
            self._notify_donation(tx)
        return tx

    async def list_recent_transactions(
        self, db: AsyncSession, limit: int, tx_type: str | None = None
    ) -> list[TransactionItem]:
        entries = await self._repo.list_transactions(db, None, limit, tx_type)
        return [TransactionItem.from_domain(t) for t in entries]

    async def list_transactions(
        self,
        db: AsyncSession,
        cursor: str | None,
        limit: int,
        tx_type: str | None = None,
    ) -> TransactionPage:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._repo.list_transactions(db, cursor_id, limit + 1, tx_type)
        has_more = len(entries) > limit
        page = entries[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return TransactionPage(
            items=[TransactionItem.from_domain(t) for t in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def total_donated(self, db: AsyncSession, donor_ref: str) -> int:
        return await self._repo.sum_donations_by_donor(db, donor_ref)

    async def donor_standing(
        self, db: AsyncSession, config: OrgConfig, donor: Identity
    ) -> DonorStanding:
        total = await self._repo.sum_donations_by_donor(db, donor.id)
        return DonorStanding(
            handle=donor.handle,
            total_donated=total,
            currency=config.currency,
            badge=donor_badge(config.donations.rewards, total),
        )

    def _notify_donation(self, tx: Transaction) -> None:
        self._dispatcher.dispatch(
            DONATION_RECORDED,
            {
                "transaction_id": tx.id,
                "amount_cents": tx.amount,
                "currency": tx.currency,
                "donor_handle": tx.donor_display_name,
                "message": tx.message,
            },
        )


class SummaryService:
    def __init__(self, repo: LedgerRepositoryProtocol | None = None) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()

    async def get_summary(self, db: AsyncSession, config: OrgConfig) -> FinancialSummary:
        totals = await self._repo.aggregate_completed(db)
        return build_summary(totals, config)

    async def get_balance(self, db: AsyncSession) -> int:
        totals = await self._repo.aggregate_completed(db)
        return totals.balance
