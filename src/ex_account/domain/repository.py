"""Balance Store Protocol: dependency inversion for testability.

Unit tests inject an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the PostgreSQL implementation.

Mutations that can fail a sufficiency check return ``None`` instead of
raising; the Settlement Engine turns that into InsufficientFundsError.
"""

from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ex_account.domain.models import (
    Balance,
    BalanceSnapshot,
    Conversion,
    DailyValue,
    EarnPosition,
)


class BalanceRepositoryProtocol(Protocol):
    # --- main ledger ---

    async def get_balance(
        self, db: AsyncSession, user_id: int, coin: str
    ) -> Balance | None: ...

    async def list_balances(self, db: AsyncSession, user_id: int) -> list[Balance]: ...

    async def lock_balance(
        self, db: AsyncSession, user_id: int, coin: str
    ) -> Balance | None: ...

    async def create_default_balances(
        self, db: AsyncSession, user_id: int, coins: tuple[str, ...]
    ) -> None: ...

    async def credit(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal
    ) -> Balance: ...

    async def debit(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal
    ) -> Balance | None: ...

    async def hold(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal
    ) -> Balance | None: ...

    async def release(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal
    ) -> Balance | None: ...

    async def consume_hold(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal
    ) -> Balance | None: ...

    # --- earn ledger ---

    async def get_earn(
        self, db: AsyncSession, user_id: int, coin: str
    ) -> EarnPosition | None: ...

    async def list_earn(self, db: AsyncSession, user_id: int) -> list[EarnPosition]: ...

    async def credit_earn(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal
    ) -> EarnPosition: ...

    async def debit_earn(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal
    ) -> EarnPosition | None: ...

    # --- audit trail ---

    async def insert_snapshot(
        self,
        db: AsyncSession,
        user_id: int,
        coin: str,
        balance: Decimal,
        price_usd: Decimal,
    ) -> BalanceSnapshot: ...

    async def daily_history(
        self, db: AsyncSession, user_id: int, days: int
    ) -> list[DailyValue]: ...

    async def insert_conversion(
        self,
        db: AsyncSession,
        user_id: int,
        from_coin: str,
        to_coin: str,
        amount: Decimal,
        received: Decimal,
        rate: Decimal,
    ) -> Conversion: ...

    async def list_conversions(
        self, db: AsyncSession, user_id: int, limit: int
    ) -> list[Conversion]: ...
