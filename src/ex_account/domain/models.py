"""Domain models for ex_account: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal


@dataclass
class Balance:
    user_id: int
    coin: str
    balance: Decimal                 # spendable
    frozen: Decimal = Decimal("0")   # held against pending withdrawals
    updated_at: datetime | None = None

    @property
    def total(self) -> Decimal:
        return self.balance + self.frozen


@dataclass
class EarnPosition:
    user_id: int
    coin: str
    balance: Decimal
    updated_at: datetime | None = None


@dataclass
class BalanceSnapshot:
    id: int
    user_id: int
    coin: str
    balance: Decimal                 # post-mutation spendable balance
    price_usd: Decimal
    created_at: datetime | None = None


@dataclass
class Conversion:
    id: int
    user_id: int
    from_coin: str
    to_coin: str
    amount: Decimal
    received: Decimal
    rate: Decimal                    # USD price of the non-USDT side
    created_at: datetime | None = None


@dataclass
class DailyValue:
    day: date
    value_usd: Decimal
