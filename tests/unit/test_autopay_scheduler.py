"""Scenario tests for AutoPaymentScheduler over an in-memory ledger."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.cm_autopay.application.service import AutoPaymentScheduler
from src.cm_common.enums import AuditAction, AutoPaymentOutcome
from src.cm_common.errors import SchedulerBusyError
from src.cm_config.application.store import parse_config
from src.cm_config.domain.models import OrgConfig
from src.cm_ledger.application.service import SummaryService, TransactionService
from src.cm_ledger.domain.models import LedgerTotals, NewTransaction, Transaction


class FakeLedger:
    """Just enough of LedgerRepositoryProtocol for the scheduler."""

    def __init__(self, donations: int = 0) -> None:
        self.rows: list[Transaction] = []
        self.fail_on: set[str] = set()
        if donations:
            self._add("IN", donations, None)

    def _add(self, tx_type: str, amount: int, description: str | None) -> Transaction:
        tx = Transaction(
            id=len(self.rows) + 1,
            type=tx_type,
            amount=amount,
            currency="BRL",
            status="completed",
            automatic=tx_type == "OUT",
            description=description,
            created_at=datetime.now(UTC),
        )
        self.rows.append(tx)
        return tx

    async def insert(self, db, tx: NewTransaction) -> tuple[Transaction, bool]:  # type: ignore[no-untyped-def]
        if tx.description in self.fail_on:
            raise RuntimeError("statement timeout")
        return self._add(tx.type, tx.amount, tx.description), True

    async def aggregate_completed(self, db) -> LedgerTotals:  # type: ignore[no-untyped-def]
        total_in = sum(t.amount for t in self.rows if t.type == "IN")
        total_out = sum(t.amount for t in self.rows if t.type == "OUT")
        return LedgerTotals(total_in=total_in, total_out=total_out)


class FakeLease:
    def __init__(self, held: bool = False) -> None:
        self.held = held
        self.released: list[str] = []

    async def acquire(self) -> str | None:
        if self.held:
            return None
        self.held = True
        return "token-1"

    async def release(self, token: str) -> None:
        self.released.append(token)
        self.held = False


def _config(*amounts: int, enabled: bool = True) -> OrgConfig:
    payments = [
        {"id": f"p{i}", "description": f"Payment {i}", "amount_cents": a}
        for i, a in enumerate(amounts, start=1)
    ]
    return parse_config(
        {
            "organization": {"currency": "BRL"},
            "cron": {
                "enabled": enabled,
                "auto_payments": {"enabled": enabled, "payments": payments},
            },
        }
    )


def _make_scheduler(
    ledger: FakeLedger, lease: FakeLease | None = None
) -> tuple[AutoPaymentScheduler, AsyncMock, MagicMock]:
    audit = AsyncMock()
    dispatcher = MagicMock()
    scheduler = AutoPaymentScheduler(
        transactions=TransactionService(repo=ledger, audit=audit, dispatcher=dispatcher),
        summary=SummaryService(repo=ledger),
        audit=audit,
        lease=lease or FakeLease(),
        dispatcher=dispatcher,
    )
    return scheduler, audit, dispatcher


def _actions(audit: AsyncMock) -> list[AuditAction]:
    return [c.args[2] for c in audit.record.await_args_list]


class TestRun:
    async def test_balance_reread_before_each_payment(self) -> None:
        ledger = FakeLedger(donations=100)
        scheduler, audit, _ = _make_scheduler(ledger)

        result = await scheduler.run(AsyncMock(), _config(60, 60))

        assert result.enabled is True
        assert result.processed == 1
        assert result.failed == 1
        first, second = result.results
        assert first.outcome == AutoPaymentOutcome.PAID
        assert second.outcome == AutoPaymentOutcome.INSUFFICIENT_BALANCE
        assert second.required == 60
        assert second.available == 40
        assert _actions(audit) == [AuditAction.CRON_PAYMENT, AuditAction.CRON_PAYMENT_FAILED]
        failed_details = audit.record.await_args_list[1].kwargs["details"]
        assert failed_details == {"reason": "insufficient balance", "required": 60, "available": 40}
        # Balance never goes negative through automatic payments
        assert (await ledger.aggregate_completed(None)).balance == 40

    async def test_insufficient_payment_does_not_block_cheaper_one(self) -> None:
        ledger = FakeLedger(donations=50)
        scheduler, _, _ = _make_scheduler(ledger)

        result = await scheduler.run(AsyncMock(), _config(80, 30))

        assert [r.outcome for r in result.results] == ["insufficient_balance", "paid"]

    async def test_error_on_one_payment_continues_run(self) -> None:
        ledger = FakeLedger(donations=100)
        ledger.fail_on.add("[auto] Payment 1")
        scheduler, audit, _ = _make_scheduler(ledger)
        db = AsyncMock()

        result = await scheduler.run(db, _config(10, 20))

        assert [r.outcome for r in result.results] == ["error", "paid"]
        assert result.results[0].error == "statement timeout"
        assert AuditAction.CRON_PAYMENT_ERROR in _actions(audit)
        db.rollback.assert_awaited()

    async def test_unwritable_error_entry_does_not_stop_run(self) -> None:
        ledger = FakeLedger(donations=100)
        ledger.fail_on.add("[auto] Payment 1")
        scheduler, audit, _ = _make_scheduler(ledger)

        async def record(db, config, action, *args, **kwargs):  # type: ignore[no-untyped-def]
            if action == AuditAction.CRON_PAYMENT_ERROR:
                raise RuntimeError("value too long for type character varying(128)")

        audit.record.side_effect = record

        result = await scheduler.run(AsyncMock(), _config(10, 20))

        assert [r.outcome for r in result.results] == ["error", "paid"]
        assert result.processed == 1
        assert result.failed == 1
        assert result.results[0].error == "statement timeout"

    async def test_disabled(self) -> None:
        ledger = FakeLedger(donations=100)
        scheduler, audit, dispatcher = _make_scheduler(ledger)

        result = await scheduler.run(AsyncMock(), _config(10, enabled=False))

        assert result.enabled is False
        assert result.processed == 0
        assert result.results == []
        audit.record.assert_not_awaited()
        dispatcher.dispatch.assert_not_called()

    async def test_empty_payment_list(self) -> None:
        scheduler, _, _ = _make_scheduler(FakeLedger(donations=100))

        result = await scheduler.run(AsyncMock(), _config())

        assert result.enabled is True
        assert result.processed == 0

    async def test_busy_lease_rejects_run(self) -> None:
        ledger = FakeLedger(donations=100)
        scheduler, audit, _ = _make_scheduler(ledger, FakeLease(held=True))

        with pytest.raises(SchedulerBusyError):
            await scheduler.run(AsyncMock(), _config(10))

        assert len(ledger.rows) == 1
        audit.record.assert_not_awaited()

    async def test_lease_released_after_run(self) -> None:
        lease = FakeLease()
        scheduler, _, _ = _make_scheduler(FakeLedger(donations=100), lease)

        await scheduler.run(AsyncMock(), _config(10))

        assert lease.released == ["token-1"]
        assert lease.held is False

    async def test_lease_released_when_run_raises(self) -> None:
        lease = FakeLease()
        ledger = FakeLedger(donations=100)
        ledger.fail_on.add("[auto] Payment 1")
        scheduler, audit, _ = _make_scheduler(ledger, lease)
        # The error audit itself fails: the run aborts
        audit.record.side_effect = RuntimeError("db down")

        with pytest.raises(RuntimeError):
            await scheduler.run(AsyncMock(), _config(10))

        assert lease.released == ["token-1"]


class TestStatus:
    async def test_reports_can_pay_per_payment(self) -> None:
        scheduler, _, _ = _make_scheduler(FakeLedger(donations=100))

        status = await scheduler.status(AsyncMock(), _config(60, 60))

        assert status.enabled is True
        assert status.payments_count == 2
        assert status.total_required == 120
        assert status.current_balance == 100
        assert status.can_execute is False
        assert [p.can_pay for p in status.payments] == [True, True]

    async def test_disabled(self) -> None:
        scheduler, _, _ = _make_scheduler(FakeLedger())

        status = await scheduler.status(AsyncMock(), _config(10, enabled=False))

        assert status.enabled is False
        assert status.payments == []
