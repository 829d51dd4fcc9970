"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_ledger.domain.models import LedgerTotals, NewTransaction, Transaction


class LedgerRepositoryProtocol(Protocol):
    async def insert(
        self, db: AsyncSession, tx: NewTransaction
    ) -> tuple[Transaction, bool]: ...

    async def get_by_id(
        self, db: AsyncSession, transaction_id: int
    ) -> Transaction | None: ...

    async def confirm_pending(
        self, db: AsyncSession, transaction_id: int
    ) -> Transaction | None: ...

    async def aggregate_completed(self, db: AsyncSession) -> LedgerTotals: ...

    async def sum_donations_by_donor(self, db: AsyncSession, donor_ref: str) -> int: ...

    async def list_transactions(
        self,
        db: AsyncSession,
        cursor_id: int | None,
        limit: int,
        tx_type: str | None,
    ) -> list[Transaction]: ...
