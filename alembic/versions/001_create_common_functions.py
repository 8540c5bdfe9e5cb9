"""001: create shared trigger functions

fn_touch_updated_at stamps updated_at on every UPDATE of the mutable ledger
rows: users, user_balances, earn_wallet, user_trade_modes, platform_settings
and deposit_addresses. Append-only tables (trades, deposits, withdrawals,
balance_history, conversions) carry no updated_at and no trigger.

Revision ID: 001
Revises: 
Create Date: 2026-10-16
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_touch_updated_at()
        RETURNS TRIGGER AS $$
        BEGIN
            IF NEW IS DISTINCT FROM OLD THEN
                NEW.updated_at = NOW();
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS fn_touch_updated_at();")
