"""Domain models for ex_trade: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.ex_common.enums import TradeDirection, TradeResult


@dataclass
class Trade:
    id: int
    user_id: int
    symbol: str
    direction: TradeDirection
    stake: Decimal                          # USDT, debited at open
    duration: int                           # seconds
    entry_price: Decimal
    result: TradeResult = TradeResult.PENDING
    profit: Decimal = Decimal("0")          # +stake*rate on WIN, -stake on LOSE
    settlement_price: Decimal | None = None  # display only, never decides the outcome
    opened_at: datetime | None = None
    resolve_at: datetime | None = None      # persisted due time for the sweep
    resolved_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.result is TradeResult.PENDING
