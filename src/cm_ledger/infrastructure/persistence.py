"""LedgerRepository — concrete implementation of LedgerRepositoryProtocol.

transactions is append-mostly: rows are inserted once and only the settlement
transition pending -> completed is ever applied (guarded UPDATE ... RETURNING).
Balance is never stored; it is aggregated over completed rows on every read.

Transaction ownership: the CALLER (application service) commits or rolls back.
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.errors import InternalError
from src.cm_ledger.domain.models import LedgerTotals, NewTransaction, Transaction

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_COLUMNS = """
    id, type, amount, currency, status, automatic,
    donor_ref, donor_display_name, description, category,
    recipient, message, external_ref, created_at
"""

# external_ref has a partial UNIQUE index; a replayed gateway event hits the
# conflict branch and returns no row.
_INSERT_SQL = text(f"""
    INSERT INTO transactions
        (type, amount, currency, status, automatic,
         donor_ref, donor_display_name, description, category,
         recipient, message, external_ref)
    VALUES
        (:type, :amount, :currency, :status, :automatic,
         :donor_ref, :donor_display_name, :description, :category,
         :recipient, :message, :external_ref)
    ON CONFLICT (external_ref) WHERE external_ref IS NOT NULL DO NOTHING
    RETURNING {_COLUMNS}
""")

_GET_BY_ID_SQL = text(f"SELECT {_COLUMNS} FROM transactions WHERE id = :id")

_GET_BY_EXTERNAL_REF_SQL = text(
    f"SELECT {_COLUMNS} FROM transactions WHERE external_ref = :external_ref"
)

_CONFIRM_SQL = text(f"""
    UPDATE transactions
    SET status = 'completed'
    WHERE id = :id AND status = 'pending'
    RETURNING {_COLUMNS}
""")

_AGGREGATE_SQL = text("""
    SELECT
        COALESCE(SUM(amount) FILTER (WHERE type = 'IN'), 0)  AS total_in,
        COALESCE(SUM(amount) FILTER (WHERE type = 'OUT'), 0) AS total_out,
        COUNT(*) FILTER (WHERE type = 'IN')                  AS donation_count,
        COUNT(*) FILTER (WHERE type = 'OUT')                 AS expense_count
    FROM transactions
    WHERE status = 'completed'
""")

_SUM_BY_DONOR_SQL = text("""
    SELECT COALESCE(SUM(amount), 0)
    FROM transactions
    WHERE type = 'IN' AND status = 'completed' AND donor_ref = :donor_ref
""")

_LIST_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM transactions
    WHERE (CAST(:cursor_id AS BIGINT) IS NULL OR id < CAST(:cursor_id AS BIGINT))
      AND (CAST(:type AS TEXT) IS NULL OR type = CAST(:type AS TEXT))
    ORDER BY id DESC
    LIMIT :limit
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------

def _row_to_transaction(row: Any) -> Transaction:
    return Transaction(
        id=row.id,
        type=row.type,
        amount=row.amount,
        currency=row.currency,
        status=row.status,
        automatic=row.automatic,
        donor_ref=row.donor_ref,
        donor_display_name=row.donor_display_name,
        description=row.description,
        category=row.category,
        recipient=row.recipient,
        message=row.message,
        external_ref=row.external_ref,
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

class LedgerRepository:
    """Concrete repository — single-row inserts and aggregate reads."""

    async def insert(
        self, db: AsyncSession, tx: NewTransaction
    ) -> tuple[Transaction, bool]:
        """Insert a transaction. Returns (transaction, created).

        created=False means external_ref was already recorded; the stored row is
        returned unchanged.
        """
        result = await db.execute(
            _INSERT_SQL,
            {
                "type": tx.type,
                "amount": tx.amount,
                "currency": tx.currency,
                "status": tx.status,
                "automatic": tx.automatic,
                "donor_ref": tx.donor_ref,
                "donor_display_name": tx.donor_display_name,
                "description": tx.description,
                "category": tx.category,
                "recipient": tx.recipient,
                "message": tx.message,
                "external_ref": tx.external_ref,
            },
        )
        row = result.fetchone()
        if row is not None:
            return _row_to_transaction(row), True

        if tx.external_ref is None:
            raise InternalError("Transaction insert returned no rows")
        existing = (
            await db.execute(_GET_BY_EXTERNAL_REF_SQL, {"external_ref": tx.external_ref})
        ).fetchone()
        if existing is None:
            raise InternalError(f"Conflicting external_ref not found: {tx.external_ref}")
        return _row_to_transaction(existing), False

    async def get_by_id(
        self, db: AsyncSession, transaction_id: int
    ) -> Transaction | None:
        row = (await db.execute(_GET_BY_ID_SQL, {"id": transaction_id})).fetchone()
        return _row_to_transaction(row) if row else None

    async def confirm_pending(
        self, db: AsyncSession, transaction_id: int
    ) -> Transaction | None:
        row = (await db.execute(_CONFIRM_SQL, {"id": transaction_id})).fetchone()
        return _row_to_transaction(row) if row else None

    async def aggregate_completed(self, db: AsyncSession) -> LedgerTotals:
        row = (await db.execute(_AGGREGATE_SQL)).fetchone()
        if row is None:
            return LedgerTotals()
        # SUM(BIGINT) comes back as NUMERIC
        return LedgerTotals(
            total_in=int(row.total_in),
            total_out=int(row.total_out),
            donation_count=int(row.donation_count),
            expense_count=int(row.expense_count),
        )

    async def sum_donations_by_donor(self, db: AsyncSession, donor_ref: str) -> int:
        result = await db.execute(_SUM_BY_DONOR_SQL, {"donor_ref": donor_ref})
        return int(result.scalar_one())

    async def list_transactions(
        self,
        db: AsyncSession,
        cursor_id: int | None,
        limit: int,
        tx_type: str | None,
    ) -> list[Transaction]:
        result = await db.execute(
            _LIST_SQL,
            {"cursor_id": cursor_id, "type": tx_type, "limit": limit},
        )
        return [_row_to_transaction(row) for row in result.fetchall()]
