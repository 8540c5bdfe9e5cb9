"""009: create conversions table

Revision ID: 009
Revises: 008
Create Date: 2026-10-16
"""
from typing import Sequence, Union
from alembic import op

revision: str = "009"
down_revision: Union[str, None] = "008"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE conversions (
            id          BIGSERIAL       PRIMARY KEY,
            user_id     BIGINT          NOT NULL REFERENCES users (id),
            from_coin   VARCHAR(16)     NOT NULL,
            to_coin     VARCHAR(16)     NOT NULL,
            amount      NUMERIC(28, 8)  NOT NULL,
            received    NUMERIC(28, 8)  NOT NULL,
            rate        NUMERIC(28, 8)  NOT NULL,
            created_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_conversions_amounts_gt_0 CHECK (amount > 0 AND received > 0),
            CONSTRAINT ck_conversions_diff_coins   CHECK (from_coin <> to_coin)
        );
    """)
    op.execute("CREATE INDEX idx_conversions_user ON conversions (user_id, id DESC);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS conversions CASCADE;")
