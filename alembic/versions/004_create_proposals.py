"""004: create proposals, votes and proposal_comments tables

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE proposals (
            id              BIGSERIAL       PRIMARY KEY,
            title           VARCHAR(200)    NOT NULL,
            description     TEXT            NOT NULL,
            author_ref      UUID            NOT NULL REFERENCES members(id),
            author_handle   VARCHAR(32)     NOT NULL,
            status          VARCHAR(16)     NOT NULL DEFAULT 'active',
            result          VARCHAR(16)     NOT NULL DEFAULT 'none',
            yes_count       INTEGER         NOT NULL DEFAULT 0,
            no_count        INTEGER         NOT NULL DEFAULT 0,
            abstain_count   INTEGER         NOT NULL DEFAULT 0,
            ends_at         TIMESTAMPTZ     NOT NULL,
            closed_at       TIMESTAMPTZ,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_proposals_status  CHECK (status IN ('active', 'closed')),
            CONSTRAINT ck_proposals_result  CHECK (result IN ('none', 'approved', 'denied', 'no_quorum')),
            CONSTRAINT ck_proposals_counts  CHECK (yes_count >= 0 AND no_count >= 0 AND abstain_count >= 0),
            CONSTRAINT ck_proposals_closed  CHECK ((status = 'closed') = (closed_at IS NOT NULL)),
            CONSTRAINT ck_proposals_window  CHECK (ends_at > created_at)
        );
    """)
    op.execute("CREATE INDEX idx_proposals_active ON proposals (ends_at) WHERE status = 'active';")
    op.execute("CREATE INDEX idx_proposals_created ON proposals (created_at DESC, id DESC);")

    op.execute("""
        CREATE TABLE votes (
            proposal_id     BIGINT          NOT NULL REFERENCES proposals(id),
            user_ref        UUID            NOT NULL REFERENCES members(id),
            user_handle     VARCHAR(32)     NOT NULL,
            choice          VARCHAR(8)      NOT NULL,
            voted_at        TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_votes_proposal_user UNIQUE (proposal_id, user_ref),
            CONSTRAINT ck_votes_choice CHECK (choice IN ('yes', 'no', 'abstain'))
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_votes_append_only
            BEFORE UPDATE OR DELETE ON votes
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)

    op.execute("""
        CREATE TABLE proposal_comments (
            id              BIGSERIAL       PRIMARY KEY,
            proposal_id     BIGINT          NOT NULL REFERENCES proposals(id),
            author_ref      UUID            NOT NULL REFERENCES members(id),
            author_handle   VARCHAR(32)     NOT NULL,
            content         TEXT            NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_comments_content CHECK (LENGTH(content) > 0)
        );
    """)
    op.execute("CREATE INDEX idx_comments_proposal ON proposal_comments (proposal_id, created_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_comments_append_only
            BEFORE UPDATE OR DELETE ON proposal_comments
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS proposal_comments CASCADE;")
    op.execute("DROP TABLE IF EXISTS votes CASCADE;")
    op.execute("DROP TABLE IF EXISTS proposals CASCADE;")
