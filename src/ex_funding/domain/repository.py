"""Repository Protocol for deposit and withdrawal requests.

Implementations take the caller's AsyncSession and never commit.
"""

from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ex_common.enums import RequestKind, RequestStatus
from src.ex_funding.domain.models import DepositAddress, FundingRequest


class FundingRepositoryProtocol(Protocol):
    async def insert(
        self,
        db: AsyncSession,
        kind: RequestKind,
        user_id: int,
        coin: str,
        amount: Decimal,
        address: str | None,
        proof_url: str | None = None,
    ) -> FundingRequest: ...

    async def get(
        self, db: AsyncSession, kind: RequestKind, request_id: int
    ) -> FundingRequest | None: ...

    async def lock(
        self, db: AsyncSession, kind: RequestKind, request_id: int
    ) -> FundingRequest | None: ...

    async def set_status(
        self,
        db: AsyncSession,
        kind: RequestKind,
        request_id: int,
        status: RequestStatus,
    ) -> FundingRequest | None:
        """Move a pending request to ``status``; None if it was no longer pending."""
        ...

    async def list_by_user(
        self, db: AsyncSession, kind: RequestKind, user_id: int, limit: int
    ) -> list[FundingRequest]: ...

    async def list_all(
        self,
        db: AsyncSession,
        kind: RequestKind,
        limit: int,
        status: RequestStatus | None = None,
    ) -> list[FundingRequest]: ...


class DepositAddressRepositoryProtocol(Protocol):
    async def list_all(self, db: AsyncSession) -> list[DepositAddress]: ...

    async def get(self, db: AsyncSession, coin: str) -> DepositAddress | None: ...

    async def upsert(
        self, db: AsyncSession, coin: str, address: str, qr_url: str | None
    ) -> DepositAddress:
        """Insert or replace the address; a None ``qr_url`` keeps the stored QR code."""
        ...
