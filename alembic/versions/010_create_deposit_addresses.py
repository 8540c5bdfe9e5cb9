"""010: create deposit_addresses table

Revision ID: 010
Revises: 009
Create Date: 2026-10-16
"""
from typing import Sequence, Union
from alembic import op

revision: str = "010"
down_revision: Union[str, None] = "009"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # One platform receiving address per coin, shown on the deposit screen
    op.execute("""
        CREATE TABLE deposit_addresses (
            coin        VARCHAR(16)     PRIMARY KEY,
            address     VARCHAR(256)    NOT NULL,
            qr_url      VARCHAR(512),
            updated_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_deposit_addresses_address_not_blank CHECK (btrim(address) <> '')
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_deposit_addresses_updated_at
            BEFORE UPDATE ON deposit_addresses
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS deposit_addresses CASCADE;")
