"""User domain service: register, verify, login and password flows.

Each mutating method commits on success and rolls back on any failure.
Verification and reset codes go out by email after the commit; delivery is
never awaited by the request.
"""

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.ex_account.domain.repository import BalanceRepositoryProtocol
from src.ex_account.infrastructure.persistence import BalanceRepository
from src.ex_common.enums import OtpPurpose
from src.ex_common.errors import (
    EmailExistsError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    InvalidOtpError,
    UsernameExistsError,
)
from src.ex_common.money import SUPPORTED_COINS
from src.ex_gateway.auth.jwt_handler import create_access_token
from src.ex_gateway.auth.otp import OtpStore
from src.ex_gateway.auth.password import hash_password, verify_password
from src.ex_gateway.notify.email import EmailSender, build_email_sender, send_in_background
from src.ex_gateway.user.db_models import UserModel

logger = logging.getLogger(__name__)

_SUBJECTS = {
    OtpPurpose.VERIFY_EMAIL: "Your verification code",
    OtpPurpose.RESET_PASSWORD: "Your password reset code",
}


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    def __init__(
        self,
        otp_store: OtpStore | None = None,
        email_sender: EmailSender | None = None,
        balances: BalanceRepositoryProtocol | None = None,
    ) -> None:
        self._otp = otp_store or OtpStore()
        self._email_sender = email_sender or build_email_sender()
        self._balances = balances or BalanceRepository()

    async def _find_by_email(self, db: AsyncSession, email: str) -> UserModel | None:
        result = await db.execute(
            select(UserModel).where(func.lower(UserModel.email) == _normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def _send_code(self, purpose: OtpPurpose, email: str) -> None:
        code = await self._otp.issue(purpose, email)
        minutes = max(1, self._otp.ttl_seconds // 60)
        body = f"Your code is {code}. It expires in {minutes} minutes."
        send_in_background(self._email_sender, email, _SUBJECTS[purpose], body)

    async def register(
        self, db: AsyncSession, username: str, email: str, password: str
    ) -> tuple[UserModel, bool]:
        """Create an unverified user with zeroed balances and email a code.

        Registering again with the email of a still-unverified account just
        re-sends the code. Returns (user, created).
        """
        email = _normalize_email(email)
        existing = await self._find_by_email(db, email)
        if existing is not None:
            if existing.verified:
                raise EmailExistsError()
            await self._send_code(OtpPurpose.VERIFY_EMAIL, email)
            return existing, False

        taken = await db.execute(
            select(UserModel.id).where(func.lower(UserModel.username) == username.lower())
        )
        if taken.scalar_one_or_none() is not None:
            raise UsernameExistsError()

        try:
            user = UserModel(
                username=username,
                email=email,
                password_hash=hash_password(password),
                verified=False,
            )
            db.add(user)
            await db.flush()
            await self._balances.create_default_balances(db, user.id, SUPPORTED_COINS)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Registered user %s (%s)", user.id, email)
        await self._send_code(OtpPurpose.VERIFY_EMAIL, email)
        return user, True

    async def verify_email(self, db: AsyncSession, email: str, code: str) -> UserModel:
        user = await self._find_by_email(db, email)
        if user is None:
            raise InvalidOtpError()
        if user.verified:
            return user
        if not await self._otp.verify(OtpPurpose.VERIFY_EMAIL, user.email, code):
            raise InvalidOtpError()
        try:
            user.verified = True
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return user

    async def resend_code(self, db: AsyncSession, email: str) -> None:
        """Re-send a verification code; unknown or verified emails are ignored."""
        user = await self._find_by_email(db, email)
        if user is None or user.verified:
            return
        await self._send_code(OtpPurpose.VERIFY_EMAIL, user.email)

    async def login(
        self, db: AsyncSession, identifier: str, password: str
    ) -> tuple[UserModel, str]:
        """Authenticate by email or username and return (user, access_token).

        Unknown user and wrong password both raise InvalidCredentialsError.
        """
        ident = identifier.strip().lower()
        result = await db.execute(
            select(UserModel).where(
                or_(func.lower(UserModel.email) == ident, func.lower(UserModel.username) == ident)
            )
        )
        user = result.scalars().first()
        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()
        if not user.verified:
            raise EmailNotVerifiedError()
        return user, create_access_token(user.id)

    async def forgot_password(self, db: AsyncSession, email: str) -> None:
        user = await self._find_by_email(db, email)
        if user is None:
            return
        await self._send_code(OtpPurpose.RESET_PASSWORD, user.email)

    async def reset_password(
        self, db: AsyncSession, email: str, code: str, new_password: str
    ) -> None:
        user = await self._find_by_email(db, email)
        if user is None:
            raise InvalidOtpError()
        if not await self._otp.verify(OtpPurpose.RESET_PASSWORD, user.email, code):
            raise InvalidOtpError()
        try:
            user.password_hash = hash_password(new_password)
            # Completing a reset proves control of the mailbox
            user.verified = True
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Password reset for user %s", user.id)

    async def change_password(
        self, db: AsyncSession, user: UserModel, current_password: str, new_password: str
    ) -> None:
        if not verify_password(current_password, user.password_hash):
            raise InvalidCredentialsError()
        try:
            user.password_hash = hash_password(new_password)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
