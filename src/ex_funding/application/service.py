"""Request Lifecycle Controller for deposits and withdrawals.

State machine: pending -> {approved, rejected}; terminal once left.

Withdrawals hold at request time: ``balance -> frozen`` in the same
transaction as the insert. Approval consumes the hold, rejection releases
it. Deposits touch no balance until approved.

``transition`` is the only way out of ``pending``. It locks the request row,
so of two concurrent approvals the second waits, sees a terminal status and
gets AlreadyFinalizedError with no balance change.

Also owns the platform deposit addresses (one per coin) and the payment
screenshots users attach to deposits. Files go to object storage before any
row changes.
"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ex_clearing.domain.settlement import SettlementEngine
from src.ex_common.enums import ActorRole, BalanceDirection, RequestKind, RequestStatus
from src.ex_common.errors import (
    AlreadyFinalizedError,
    InternalError,
    InvalidRequestError,
    PermissionDeniedError,
    RequestNotFoundError,
)
from src.ex_common.money import normalize_coin, parse_amount
from src.ex_funding.domain.models import DepositAddress, FundingRequest
from src.ex_funding.domain.repository import (
    DepositAddressRepositoryProtocol,
    FundingRepositoryProtocol,
)
from src.ex_funding.infrastructure.address_repository import DepositAddressRepository
from src.ex_funding.infrastructure.persistence import FundingRepository
from src.ex_market.infrastructure.price_feed import PriceFeed, get_price_feed
from src.ex_profile.infrastructure.storage import (
    LocalObjectStorage,
    ObjectStorage,
    UploadedFile,
    check_image,
)

logger = logging.getLogger(__name__)

PROOF_BUCKET = "deposit-proof"
QR_BUCKET = "deposit-qr"

_MAX_ADDRESS_LEN = 256


def _clean_address(address: str | None, required: bool) -> str | None:
    value = (address or "").strip()
    if not value:
        if required:
            raise InvalidRequestError("An address is required")
        return None
    if len(value) > _MAX_ADDRESS_LEN:
        raise InvalidRequestError("Address is too long")
    return value


class FundingService:
    def __init__(
        self,
        repo: FundingRepositoryProtocol | None = None,
        engine: SettlementEngine | None = None,
        price_feed: PriceFeed | None = None,
        addresses: DepositAddressRepositoryProtocol | None = None,
        storage: ObjectStorage | None = None,
        max_upload_bytes: int | None = None,
    ) -> None:
        self._repo: FundingRepositoryProtocol = repo or FundingRepository()
        self._engine = engine or SettlementEngine()
        self._price_feed = price_feed
        self._addresses: DepositAddressRepositoryProtocol = addresses or DepositAddressRepository()
        self._storage = storage or LocalObjectStorage()
        self._max_bytes = max_upload_bytes or settings.UPLOAD_MAX_BYTES

    @property
    def price_feed(self) -> PriceFeed:
        return self._price_feed or get_price_feed()

    async def create_deposit(
        self,
        db: AsyncSession,
        user_id: int,
        coin: str,
        amount: Decimal | str,
        address: str | None = None,
        proof_url: str | None = None,
    ) -> FundingRequest:
        """Record a pending deposit. No balance effect until an admin approves."""
        code = normalize_coin(coin)
        value = parse_amount(amount, code)
        try:
            request = await self._repo.insert(
                db, RequestKind.DEPOSIT, user_id, code, value,
                _clean_address(address, required=False), proof_url,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Deposit #%s requested: user %s %s %s", request.id, user_id, value, code)
        return request

    async def upload_deposit_proof(self, user_id: int, upload: UploadedFile) -> str:
        """Store a payment screenshot and return the URL to send as ``proof_url``."""
        ext = check_image(upload, "proof", self._max_bytes)
        key = f"{user_id}-{uuid.uuid4().hex[:12]}{ext}"
        url = await self._storage.put(PROOF_BUCKET, key, upload.data, upload.content_type)
        logger.info("Deposit proof stored for user %s", user_id)
        return url

    # ------------------------------------------------------------------
    # Platform deposit addresses
    # ------------------------------------------------------------------

    async def list_deposit_addresses(self, db: AsyncSession) -> list[DepositAddress]:
        return await self._addresses.list_all(db)

    async def set_deposit_address(
        self,
        db: AsyncSession,
        coin: str,
        address: str,
        qr: UploadedFile | None = None,
    ) -> DepositAddress:
        """Create or replace the receiving address for ``coin``.

        Without a new QR image the stored one is kept. A storage failure
        raises StorageUnavailableError before the row is touched.
        """
        code = normalize_coin(coin)
        value = _clean_address(address, required=True)
        qr_url = None
        if qr is not None:
            ext = check_image(qr, "qr", self._max_bytes)
            key = f"{code.lower()}-{uuid.uuid4().hex[:12]}{ext}"
            qr_url = await self._storage.put(QR_BUCKET, key, qr.data, qr.content_type)
        try:
            saved = await self._addresses.upsert(db, code, value, qr_url)  # type: ignore[arg-type]
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Deposit address for %s set to %s", code, value)
        return saved

    async def create_withdrawal(
        self,
        db: AsyncSession,
        user_id: int,
        coin: str,
        amount: Decimal | str,
        address: str | None,
    ) -> FundingRequest:
        """Hold the funds and record a pending withdrawal, both or neither.

        Raises:
            InsufficientFundsError: spendable balance below ``amount``; nothing persisted.
        """
        code = normalize_coin(coin)
        value = parse_amount(amount, code)
        destination = _clean_address(address, required=True)
        try:
            await self._engine.place_hold(db, user_id, code, value)
            request = await self._repo.insert(
                db, RequestKind.WITHDRAWAL, user_id, code, value, destination
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Withdrawal #%s requested: user %s %s %s (held)", request.id, user_id, value, code)
        return request

    async def transition(
        self,
        db: AsyncSession,
        kind: RequestKind,
        request_id: int,
        target: RequestStatus,
        actor: ActorRole,
    ) -> FundingRequest:
        """Approve or reject a pending request exactly once.

        Raises:
            PermissionDeniedError: actor is not an admin.
            RequestNotFoundError: no such request.
            AlreadyFinalizedError: request already approved or rejected.
            InsufficientFundsError: withdrawal hold no longer covers the amount.
        """
        if actor is not ActorRole.ADMIN:
            raise PermissionDeniedError(f"{target.value} {kind.value}")
        if not target.is_terminal:
            raise InvalidRequestError("Target status must be approved or rejected")

        # Snapshot price is fetched before any lock is taken
        price_usd: Decimal | None = None
        if target is RequestStatus.APPROVED:
            current = await self._repo.get(db, kind, request_id)
            if current is None:
                raise RequestNotFoundError(kind.value, request_id)
            if not current.is_pending:
                raise AlreadyFinalizedError(kind.value, request_id, current.status.value)
            price_usd = (await self.price_feed.best_effort_price(current.coin)).price

        try:
            request = await self._repo.lock(db, kind, request_id)
            if request is None:
                raise RequestNotFoundError(kind.value, request_id)
            if not request.is_pending:
                raise AlreadyFinalizedError(kind.value, request_id, request.status.value)

            await self._settle(db, request, target, price_usd)

            updated = await self._repo.set_status(db, kind, request_id, target)
            if updated is None:
                # Unreachable while the row lock is held
                raise InternalError(f"{kind.value} #{request_id} left pending under lock")
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "%s #%s %s by %s: user %s %s %s",
            kind.value.capitalize(),
            request_id,
            target.value,
            actor.value,
            updated.user_id,
            updated.amount,
            updated.coin,
        )
        return updated

    async def _settle(
        self,
        db: AsyncSession,
        request: FundingRequest,
        target: RequestStatus,
        price_usd: Decimal | None,
    ) -> None:
        if request.kind is RequestKind.DEPOSIT:
            if target is RequestStatus.APPROVED:
                balance = await self._engine.apply_delta(
                    db, request.user_id, request.coin, request.amount, BalanceDirection.CREDIT
                )
                await self._engine.record_snapshot(db, balance, price_usd or Decimal(0))
            return

        if target is RequestStatus.APPROVED:
            balance = await self._engine.settle_hold(
                db, request.user_id, request.coin, request.amount
            )
            await self._engine.record_snapshot(db, balance, price_usd or Decimal(0))
        else:
            await self._engine.release_hold(db, request.user_id, request.coin, request.amount)

    async def list_for_user(
        self, db: AsyncSession, kind: RequestKind, user_id: int, limit: int = 50
    ) -> list[FundingRequest]:
        return await self._repo.list_by_user(db, kind, user_id, limit)

    async def list_all(
        self,
        db: AsyncSession,
        kind: RequestKind,
        limit: int = 100,
        status: RequestStatus | None = None,
    ) -> list[FundingRequest]:
        return await self._repo.list_all(db, kind, limit, status)


_funding_service: FundingService | None = None


def get_funding_service() -> FundingService:
    global _funding_service  # noqa: PLW0603
    if _funding_service is None:
        _funding_service = FundingService()
    return _funding_service
