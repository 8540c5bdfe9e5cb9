"""003: create user_balances table

Revision ID: 003
Revises: 002
Create Date: 2026-10-16
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE user_balances (
            user_id     BIGINT          NOT NULL REFERENCES users (id),
            coin        VARCHAR(16)     NOT NULL,
            balance     NUMERIC(28, 8)  NOT NULL DEFAULT 0,
            frozen      NUMERIC(28, 8)  NOT NULL DEFAULT 0,
            version     BIGINT          NOT NULL DEFAULT 0,
            created_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_user_balances             PRIMARY KEY (user_id, coin),
            CONSTRAINT ck_user_balances_balance_gte_0 CHECK (balance >= 0),
            CONSTRAINT ck_user_balances_frozen_gte_0  CHECK (frozen >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_user_balances_updated_at
            BEFORE UPDATE ON user_balances
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute(
        "COMMENT ON TABLE user_balances IS "
        "'Main ledger per (user, coin): spendable balance and frozen withdrawal holds';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_balances CASCADE;")
