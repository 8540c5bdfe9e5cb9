"""004: create deposits and withdrawals tables

Revision ID: 004
Revises: 003
Create Date: 2026-10-16
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE deposits (
            id          BIGSERIAL       PRIMARY KEY,
            user_id     BIGINT          NOT NULL REFERENCES users (id),
            coin        VARCHAR(16)     NOT NULL,
            amount      NUMERIC(28, 8)  NOT NULL,
            address     VARCHAR(256),
            proof_url   VARCHAR(512),
            status      VARCHAR(16)     NOT NULL DEFAULT 'pending',
            created_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            reviewed_at TIMESTAMPTZ,
            CONSTRAINT ck_deposits_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_deposits_status      CHECK (
                status IN ('pending', 'approved', 'rejected')
            )
        );
    """)
    op.execute("CREATE INDEX idx_deposits_user ON deposits (user_id, id DESC);")
    op.execute("CREATE INDEX idx_deposits_pending ON deposits (id) WHERE status = 'pending';")

    op.execute("""
        CREATE TABLE withdrawals (
            id          BIGSERIAL       PRIMARY KEY,
            user_id     BIGINT          NOT NULL REFERENCES users (id),
            coin        VARCHAR(16)     NOT NULL,
            amount      NUMERIC(28, 8)  NOT NULL,
            address     VARCHAR(256)    NOT NULL,
            status      VARCHAR(16)     NOT NULL DEFAULT 'pending',
            created_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            reviewed_at TIMESTAMPTZ,
            CONSTRAINT ck_withdrawals_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_withdrawals_status      CHECK (
                status IN ('pending', 'approved', 'rejected')
            )
        );
    """)
    op.execute("CREATE INDEX idx_withdrawals_user ON withdrawals (user_id, id DESC);")
    op.execute(
        "CREATE INDEX idx_withdrawals_pending ON withdrawals (user_id, coin) "
        "WHERE status = 'pending';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS withdrawals CASCADE;")
    op.execute("DROP TABLE IF EXISTS deposits CASCADE;")
