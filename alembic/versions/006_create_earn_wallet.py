"""006: create earn_wallet table

Revision ID: 006
Revises: 005
Create Date: 2026-10-16
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE earn_wallet (
            user_id     BIGINT          NOT NULL REFERENCES users (id),
            coin        VARCHAR(16)     NOT NULL,
            balance     NUMERIC(28, 8)  NOT NULL DEFAULT 0,
            created_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_earn_wallet             PRIMARY KEY (user_id, coin),
            CONSTRAINT ck_earn_wallet_balance_gte_0 CHECK (balance >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_earn_wallet_updated_at
            BEFORE UPDATE ON earn_wallet
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS earn_wallet CASCADE;")
