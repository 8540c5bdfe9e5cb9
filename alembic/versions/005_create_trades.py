"""005: create trades table

Revision ID: 005
Revises: 004
Create Date: 2026-10-16
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE trades (
            id               BIGSERIAL       PRIMARY KEY,
            user_id          BIGINT          NOT NULL REFERENCES users (id),
            symbol           VARCHAR(16)     NOT NULL,
            direction        VARCHAR(4)      NOT NULL,
            stake            NUMERIC(28, 8)  NOT NULL,
            duration         INT             NOT NULL,
            entry_price      NUMERIC(28, 8)  NOT NULL,
            result           VARCHAR(8)      NOT NULL DEFAULT 'PENDING',
            profit           NUMERIC(28, 8)  NOT NULL DEFAULT 0,
            settlement_price NUMERIC(28, 8),
            opened_at        TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            resolve_at       TIMESTAMPTZ     NOT NULL,
            resolved_at      TIMESTAMPTZ,
            CONSTRAINT ck_trades_direction   CHECK (direction IN ('BUY', 'SELL')),
            CONSTRAINT ck_trades_result      CHECK (result IN ('PENDING', 'WIN', 'LOSE')),
            CONSTRAINT ck_trades_stake_gt_0  CHECK (stake > 0),
            CONSTRAINT ck_trades_duration    CHECK (duration BETWEEN 5 AND 120)
        );
    """)
    op.execute("CREATE INDEX idx_trades_user ON trades (user_id, id DESC);")
    # Restart/periodic sweep of overdue trades
    op.execute(
        "CREATE INDEX idx_trades_pending_resolve_at ON trades (resolve_at) "
        "WHERE result = 'PENDING';"
    )
    op.execute("COMMENT ON TABLE trades IS 'Timed up/down trades; resolve_at is the durable due time';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS trades CASCADE;")
