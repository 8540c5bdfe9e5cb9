"""007: create trade mode tables

Revision ID: 007
Revises: 006
Create Date: 2026-10-16
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE user_trade_modes (
            user_id     BIGINT      PRIMARY KEY REFERENCES users (id),
            mode        VARCHAR(8)  NOT NULL,
            updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_user_trade_modes_mode CHECK (mode IN ('WIN', 'LOSE'))
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_user_trade_modes_updated_at
            BEFORE UPDATE ON user_trade_modes
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("""
        CREATE TABLE platform_settings (
            key         VARCHAR(64)  PRIMARY KEY,
            value       VARCHAR(255) NOT NULL,
            updated_at  TIMESTAMPTZ  NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_platform_settings_updated_at
            BEFORE UPDATE ON platform_settings
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("INSERT INTO platform_settings (key, value) VALUES ('TRADE_MODE', 'AUTO');")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS platform_settings CASCADE;")
    op.execute("DROP TABLE IF EXISTS user_trade_modes CASCADE;")
