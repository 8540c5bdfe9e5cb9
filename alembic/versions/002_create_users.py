"""002: create users table

Revision ID: 002
Revises: 001
Create Date: 2026-10-16
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE users (
            id              BIGSERIAL       PRIMARY KEY,
            username        VARCHAR(64)     NOT NULL,
            email           VARCHAR(255)    NOT NULL,
            password_hash   VARCHAR(255)    NOT NULL,
            verified        BOOLEAN         NOT NULL DEFAULT FALSE,
            kyc_status      VARCHAR(16)     NOT NULL DEFAULT 'unverified',
            kyc_selfie_url  VARCHAR(512),
            kyc_id_card_url VARCHAR(512),
            avatar_url      VARCHAR(512),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_users_username     UNIQUE (username),
            CONSTRAINT uq_users_email        UNIQUE (email),
            CONSTRAINT ck_users_username_len CHECK (LENGTH(username) >= 3),
            CONSTRAINT ck_users_kyc_status   CHECK (
                kyc_status IN ('unverified', 'pending', 'approved', 'rejected')
            )
        );
    """)
    # Login and registration match case-insensitively
    op.execute("CREATE UNIQUE INDEX uq_users_email_lower ON users (LOWER(email));")
    op.execute("CREATE INDEX idx_users_username_lower ON users (LOWER(username));")
    op.execute("""
        CREATE TRIGGER trg_users_updated_at
            BEFORE UPDATE ON users
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("COMMENT ON TABLE users IS 'Accounts: credentials, email verification, KYC';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
