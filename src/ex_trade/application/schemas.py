"""Pydantic schemas for ex_trade API."""

from decimal import Decimal

from pydantic import BaseModel, Field

from src.ex_common.datetime_utils import iso_or_none
from src.ex_common.money import MAX_AMOUNT, QUOTE_COIN, format_amount, round_price
from src.ex_market.domain.symbols import price_decimals
from src.ex_trade.domain.models import Trade


class OpenTradeRequest(BaseModel):
    symbol: str = Field("BTC", description="BTC, btc/usdt, BTCUSDT, XAU ...")
    direction: str = Field(..., description="BUY/SELL (LONG/SHORT accepted)")
    amount: Decimal = Field(..., gt=0, description="Stake in USDT")
    duration: int = Field(30, description="Seconds; clamped to [5, 120]")
    client_price: Decimal | None = Field(
        None,
        gt=0,
        lt=MAX_AMOUNT,
        description="Price shown to the user; used only if every feed is down",
    )


class TradeResponse(BaseModel):
    id: int
    user_id: int
    symbol: str
    direction: str
    amount: str
    duration: int
    entry_price: str
    result: str
    profit: str
    settlement_price: str | None
    opened_at: str | None
    resolve_at: str | None
    resolved_at: str | None

    @classmethod
    def from_trade(cls, trade: Trade) -> "TradeResponse":
        places = price_decimals(trade.symbol)
        return cls(
            id=trade.id,
            user_id=trade.user_id,
            symbol=trade.symbol,
            direction=trade.direction.value,
            amount=format_amount(trade.stake, QUOTE_COIN),
            duration=trade.duration,
            entry_price=f"{round_price(trade.entry_price, places):f}",
            result=trade.result.value,
            profit=format_amount(trade.profit, QUOTE_COIN),
            settlement_price=(
                f"{round_price(trade.settlement_price, places):f}"
                if trade.settlement_price is not None
                else None
            ),
            opened_at=iso_or_none(trade.opened_at),
            resolve_at=iso_or_none(trade.resolve_at),
            resolved_at=iso_or_none(trade.resolved_at),
        )


class TradeListResponse(BaseModel):
    items: list[TradeResponse]
