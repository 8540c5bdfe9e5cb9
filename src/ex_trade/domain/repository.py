"""Repository Protocols for ex_trade.

Unit tests inject in-memory fakes; infrastructure provides PostgreSQL.
"""

from datetime import datetime
from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ex_common.enums import GlobalTradeMode, TradeDirection, TradeResult, UserTradeMode
from src.ex_trade.domain.models import Trade


class TradeRepositoryProtocol(Protocol):
    async def insert(
        self,
        db: AsyncSession,
        user_id: int,
        symbol: str,
        direction: TradeDirection,
        stake: Decimal,
        duration: int,
        entry_price: Decimal,
        opened_at: datetime,
        resolve_at: datetime,
    ) -> Trade: ...

    async def get(self, db: AsyncSession, trade_id: int) -> Trade | None: ...

    async def lock(self, db: AsyncSession, trade_id: int) -> Trade | None: ...

    async def mark_resolved(
        self,
        db: AsyncSession,
        trade_id: int,
        result: TradeResult,
        profit: Decimal,
        settlement_price: Decimal,
    ) -> Trade | None: ...

    async def list_by_user(
        self, db: AsyncSession, user_id: int, limit: int
    ) -> list[Trade]: ...

    async def list_overdue_ids(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[int]: ...

    async def list_all(
        self, db: AsyncSession, limit: int, result: TradeResult | None = None
    ) -> list[Trade]: ...


class TradeModeRepositoryProtocol(Protocol):
    async def get_user_mode(
        self, db: AsyncSession, user_id: int
    ) -> UserTradeMode | None: ...

    async def set_user_mode(
        self, db: AsyncSession, user_id: int, mode: UserTradeMode
    ) -> None: ...

    async def clear_user_mode(self, db: AsyncSession, user_id: int) -> bool: ...

    async def list_user_modes(
        self, db: AsyncSession
    ) -> list[tuple[int, UserTradeMode]]: ...

    async def get_global_mode(self, db: AsyncSession) -> GlobalTradeMode: ...

    async def set_global_mode(self, db: AsyncSession, mode: GlobalTradeMode) -> None: ...
