"""003: create transactions table

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE transactions (
            id                  BIGSERIAL       PRIMARY KEY,
            type                VARCHAR(3)      NOT NULL,
            amount              BIGINT          NOT NULL,
            currency            CHAR(3)         NOT NULL,
            status              VARCHAR(16)     NOT NULL DEFAULT 'completed',
            automatic           BOOLEAN         NOT NULL DEFAULT FALSE,
            donor_ref           UUID            REFERENCES members(id),
            donor_display_name  VARCHAR(32),
            description         TEXT,
            category            VARCHAR(50),
            recipient           VARCHAR(200),
            message             TEXT,
            external_ref        VARCHAR(128),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_transactions_type     CHECK (type IN ('IN', 'OUT')),
            CONSTRAINT ck_transactions_amount   CHECK (amount > 0),
            CONSTRAINT ck_transactions_status   CHECK (status IN ('completed', 'pending')),
            CONSTRAINT ck_transactions_auto_out CHECK (NOT automatic OR type = 'OUT')
        );
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_transactions_external_ref
            ON transactions (external_ref) WHERE external_ref IS NOT NULL;
    """)
    op.execute("CREATE INDEX idx_transactions_type_id ON transactions (type, id DESC);")
    op.execute("""
        CREATE INDEX idx_transactions_donor
            ON transactions (donor_ref) WHERE donor_ref IS NOT NULL;
    """)
    # Only the settlement transition pending -> completed may change a row
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_transactions_guard_update()
        RETURNS TRIGGER AS $$
        BEGIN
            IF OLD.status = 'pending' AND NEW.status = 'completed'
               AND (NEW.type, NEW.amount, NEW.currency, NEW.external_ref)
                   IS NOT DISTINCT FROM (OLD.type, OLD.amount, OLD.currency, OLD.external_ref)
            THEN
                RETURN NEW;
            END IF;
            RAISE EXCEPTION 'transactions rows are immutable except pending -> completed';
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER trg_transactions_guard_update
            BEFORE UPDATE ON transactions
            FOR EACH ROW EXECUTE FUNCTION fn_transactions_guard_update();
    """)
    op.execute("""
        CREATE TRIGGER trg_transactions_no_delete
            BEFORE DELETE ON transactions
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)
    op.execute("COMMENT ON TABLE transactions IS 'Ledger — amounts in cents; balance is derived, never stored';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS transactions CASCADE;")
    op.execute("DROP FUNCTION IF EXISTS fn_transactions_guard_update();")
