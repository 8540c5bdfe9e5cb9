"""Pydantic schemas for the account and earn APIs.

Amounts cross the wire as strings formatted at coin precision so clients
never round-trip money through floats.
"""

from decimal import Decimal

from pydantic import BaseModel, Field

from src.ex_account.domain.models import Balance, Conversion, DailyValue, EarnPosition
from src.ex_common.datetime_utils import iso_or_none
from src.ex_common.money import format_amount

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ConvertRequest(BaseModel):
    from_coin: str = Field(..., description="USDT or a supported coin")
    to_coin: str = Field(..., description="USDT or a supported coin; one side must be USDT")
    amount: Decimal = Field(..., gt=0, description="Amount of from_coin to spend")


class EarnTransferRequest(BaseModel):
    coin: str
    amount: Decimal = Field(..., gt=0)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    coin: str
    balance: str
    frozen: str
    total: str

    @classmethod
    def from_balance(cls, b: Balance) -> "BalanceResponse":
        return cls(
            coin=b.coin,
            balance=format_amount(b.balance, b.coin),
            frozen=format_amount(b.frozen, b.coin),
            total=format_amount(b.total, b.coin),
        )


class BalanceListResponse(BaseModel):
    items: list[BalanceResponse]


class EarnPositionResponse(BaseModel):
    coin: str
    balance: str

    @classmethod
    def from_position(cls, p: EarnPosition) -> "EarnPositionResponse":
        return cls(coin=p.coin, balance=format_amount(p.balance, p.coin))


class EarnTransferResponse(BaseModel):
    main: BalanceResponse
    earn: EarnPositionResponse


class DailyValueResponse(BaseModel):
    day: str
    value_usd: str

    @classmethod
    def from_value(cls, v: DailyValue) -> "DailyValueResponse":
        return cls(day=v.day.isoformat(), value_usd=format_amount(v.value_usd, "USDT"))


class ConversionResponse(BaseModel):
    id: int
    from_coin: str
    to_coin: str
    amount: str
    received: str
    rate: str
    created_at: str | None

    @classmethod
    def from_conversion(cls, c: Conversion) -> "ConversionResponse":
        return cls(
            id=c.id,
            from_coin=c.from_coin,
            to_coin=c.to_coin,
            amount=format_amount(c.amount, c.from_coin),
            received=format_amount(c.received, c.to_coin),
            rate=f"{c.rate:f}",
            created_at=iso_or_none(c.created_at),
        )
