"""SQLAlchemy ORM model for the users table.

Table is created by Alembic migration: alembic/versions/002_create_users.py
Balances, trades and requests reference ``users.id`` and are accessed with raw SQL.
"""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, String, text
from sqlalchemy.orm import Mapped, mapped_column

from src.ex_common.database import Base
from src.ex_common.enums import KycStatus


class UserModel(Base):
    __tablename__ = "users"
    # Load server-side timestamps via RETURNING so no lazy load happens after flush
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    kyc_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=KycStatus.UNVERIFIED.value
    )
    kyc_selfie_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    kyc_id_card_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("NOW()")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("NOW()")
    )
