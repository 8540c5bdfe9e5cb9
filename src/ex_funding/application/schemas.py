"""Pydantic schemas for the deposit and withdrawal APIs."""

from decimal import Decimal

from pydantic import BaseModel, Field

from src.ex_common.datetime_utils import iso_or_none
from src.ex_common.money import format_amount
from src.ex_funding.domain.models import DepositAddress, FundingRequest


class DepositCreateRequest(BaseModel):
    coin: str
    amount: Decimal = Field(..., gt=0)
    address: str | None = Field(None, max_length=256, description="Platform address paid to")
    proof_url: str | None = Field(None, max_length=512, description="Payment screenshot URL")


class WithdrawalCreateRequest(BaseModel):
    coin: str
    amount: Decimal = Field(..., gt=0)
    address: str = Field(..., min_length=1, max_length=256)


class FundingRequestResponse(BaseModel):
    id: int
    kind: str
    user_id: int
    coin: str
    amount: str
    address: str | None
    proof_url: str | None
    status: str
    created_at: str | None
    reviewed_at: str | None

    @classmethod
    def from_request(cls, r: FundingRequest) -> "FundingRequestResponse":
        return cls(
            id=r.id,
            kind=r.kind.value,
            user_id=r.user_id,
            coin=r.coin,
            amount=format_amount(r.amount, r.coin),
            address=r.address,
            proof_url=r.proof_url,
            status=r.status.value,
            created_at=iso_or_none(r.created_at),
            reviewed_at=iso_or_none(r.reviewed_at),
        )


class DepositAddressResponse(BaseModel):
    coin: str
    address: str
    qr_url: str | None
    updated_at: str | None

    @classmethod
    def from_address(cls, a: DepositAddress) -> "DepositAddressResponse":
        return cls(
            coin=a.coin,
            address=a.address,
            qr_url=a.qr_url,
            updated_at=iso_or_none(a.updated_at),
        )
