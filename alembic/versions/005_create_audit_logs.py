"""005: create audit_logs table

Revision ID: 005
Revises: 004
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE audit_logs (
            id              BIGSERIAL       PRIMARY KEY,
            action          VARCHAR(32)     NOT NULL,
            actor_handle    VARCHAR(64)     NOT NULL,
            target          VARCHAR(128),
            details         JSONB,
            public          BOOLEAN         NOT NULL,
            timestamp       TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_audit_logs_timestamp ON audit_logs (timestamp DESC, id DESC);")
    op.execute("""
        CREATE INDEX idx_audit_logs_public
            ON audit_logs (timestamp DESC, id DESC) WHERE public = TRUE;
    """)
    op.execute("""
        CREATE TRIGGER trg_audit_logs_append_only
            BEFORE UPDATE OR DELETE ON audit_logs
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)
    op.execute("COMMENT ON TABLE audit_logs IS 'Append-only audit trail; public fixed at write time';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS audit_logs CASCADE;")
