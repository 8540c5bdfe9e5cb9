"""008: create balance_history table

Revision ID: 008
Revises: 007
Create Date: 2026-10-16
"""
from typing import Sequence, Union
from alembic import op

revision: str = "008"
down_revision: Union[str, None] = "007"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE balance_history (
            id          BIGSERIAL       PRIMARY KEY,
            user_id     BIGINT          NOT NULL REFERENCES users (id),
            coin        VARCHAR(16)     NOT NULL,
            balance     NUMERIC(28, 8)  NOT NULL,
            price_usd   NUMERIC(28, 8)  NOT NULL,
            created_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute(
        "CREATE INDEX idx_balance_history_user_time ON balance_history (user_id, created_at DESC);"
    )
    op.execute(
        "COMMENT ON TABLE balance_history IS "
        "'Append-only post-mutation balance snapshots with USD price';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS balance_history CASCADE;")
