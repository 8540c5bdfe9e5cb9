"""Profile and KYC service.

Files are stored first; the users row changes only after every upload has
succeeded, so a storage failure leaves the account untouched.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ex_common.enums import KycStatus
from src.ex_common.errors import KycAlreadySubmittedError, UserNotFoundError
from src.ex_gateway.user.db_models import UserModel
from src.ex_profile.infrastructure.storage import (
    LocalObjectStorage,
    ObjectStorage,
    UploadedFile,
    check_image,
)

logger = logging.getLogger(__name__)

AVATAR_BUCKET = "avatar"
KYC_BUCKET = "kyc"

_SET_AVATAR_SQL = text("""
    UPDATE users SET avatar_url = :url
    WHERE id = :user_id
    RETURNING avatar_url
""")

# Only unverified or rejected accounts may (re)submit
_SUBMIT_KYC_SQL = text("""
    UPDATE users
    SET kyc_status = 'pending',
        kyc_selfie_url = :selfie_url,
        kyc_id_card_url = :id_card_url
    WHERE id = :user_id AND kyc_status IN ('unverified', 'rejected')
    RETURNING kyc_status, kyc_selfie_url, kyc_id_card_url
""")

_GET_KYC_SQL = text("SELECT kyc_status FROM users WHERE id = :user_id")

_BLOCKING_KYC = (KycStatus.PENDING.value, KycStatus.APPROVED.value)


@dataclass(frozen=True)
class KycSubmission:
    status: str
    selfie_url: str
    id_card_url: str


class ProfileService:
    def __init__(self, storage: ObjectStorage | None = None, max_bytes: int | None = None) -> None:
        self._storage = storage or LocalObjectStorage()
        self._max_bytes = max_bytes or settings.UPLOAD_MAX_BYTES

    def profile(self, user: UserModel) -> dict[str, object]:
        return {
            "user_id": user.id,
            "display_id": f"NC-{user.id:07d}",
            "username": user.username,
            "email": user.email,
            "verified": user.verified,
            "kyc_status": user.kyc_status,
            "avatar_url": user.avatar_url,
        }

    async def upload_avatar(self, db: AsyncSession, user_id: int, upload: UploadedFile) -> str:
        ext = check_image(upload, "avatar", self._max_bytes)
        key = f"{user_id}-{uuid.uuid4().hex[:12]}{ext}"
        url = await self._storage.put(AVATAR_BUCKET, key, upload.data, upload.content_type)
        try:
            row = (await db.execute(_SET_AVATAR_SQL, {"user_id": user_id, "url": url})).fetchone()
            if row is None:
                raise UserNotFoundError(user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return url

    async def kyc_status(self, db: AsyncSession, user_id: int) -> str:
        status = (await db.execute(_GET_KYC_SQL, {"user_id": user_id})).scalar_one_or_none()
        return status or KycStatus.UNVERIFIED.value

    async def submit_kyc(
        self,
        db: AsyncSession,
        user_id: int,
        selfie: UploadedFile,
        id_card: UploadedFile,
    ) -> KycSubmission:
        """Upload the selfie and ID card, then move KYC to ``pending``.

        Raises:
            KycAlreadySubmittedError: status is pending or approved.
            StorageUnavailableError: an upload failed; nothing was changed.
        """
        current = await self.kyc_status(db, user_id)
        if current in _BLOCKING_KYC:
            raise KycAlreadySubmittedError(current)
        selfie_ext = check_image(selfie, "selfie", self._max_bytes)
        id_card_ext = check_image(id_card, "id_card", self._max_bytes)

        stamp = uuid.uuid4().hex[:12]
        selfie_url = await self._storage.put(
            KYC_BUCKET,
            f"{user_id}-selfie-{stamp}{selfie_ext}",
            selfie.data,
            selfie.content_type,
        )
        id_card_url = await self._storage.put(
            KYC_BUCKET,
            f"{user_id}-idcard-{stamp}{id_card_ext}",
            id_card.data,
            id_card.content_type,
        )

        try:
            row = (
                await db.execute(
                    _SUBMIT_KYC_SQL,
                    {"user_id": user_id, "selfie_url": selfie_url, "id_card_url": id_card_url},
                )
            ).fetchone()
            if row is None:
                # Lost a race with another submission or an admin decision
                raise KycAlreadySubmittedError(await self.kyc_status(db, user_id))
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("KYC submitted for user %s", user_id)
        return KycSubmission(row.kyc_status, selfie_url, id_card_url)  # type: ignore[attr-defined]


_profile_service: ProfileService | None = None


def get_profile_service() -> ProfileService:
    global _profile_service  # noqa: PLW0603
    if _profile_service is None:
        _profile_service = ProfileService()
    return _profile_service
