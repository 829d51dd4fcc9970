"""002: create members table

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE members (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            email           VARCHAR(255)    NOT NULL,
            handle          VARCHAR(32)     NOT NULL,
            role            VARCHAR(16)     NOT NULL DEFAULT 'member',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_members_email     UNIQUE (email),
            CONSTRAINT uq_members_handle    UNIQUE (handle),
            CONSTRAINT ck_members_role      CHECK (role IN ('admin', 'member')),
            CONSTRAINT ck_members_email_lc  CHECK (email = LOWER(email))
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_members_updated_at
            BEFORE UPDATE ON members
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE members IS 'Members resolved from e-mail; handle is the public name';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS members CASCADE;")
