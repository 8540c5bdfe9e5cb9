"""TradeRepository: concrete implementation of TradeRepositoryProtocol.

The PENDING -> WIN/LOSE transition is a conditional UPDATE on
``result = 'PENDING'``: a second resolution attempt matches 0 rows.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ex_common.enums import TradeDirection, TradeResult
from src.ex_common.errors import InternalError
from src.ex_trade.domain.models import Trade

_TRADE_COLUMNS = (
    "id, user_id, symbol, direction, stake, duration, entry_price, result, profit, "
    "settlement_price, opened_at, resolve_at, resolved_at"
)

_INSERT_TRADE_SQL = text(f"""
    INSERT INTO trades
        (user_id, symbol, direction, stake, duration, entry_price,
         result, profit, opened_at, resolve_at)
    VALUES
        (:user_id, :symbol, :direction, :stake, :duration, :entry_price,
         'PENDING', 0, :opened_at, :resolve_at)
    RETURNING {_TRADE_COLUMNS}
""")

_GET_TRADE_SQL = text(f"SELECT {_TRADE_COLUMNS} FROM trades WHERE id = :trade_id")

_LOCK_TRADE_SQL = text(f"SELECT {_TRADE_COLUMNS} FROM trades WHERE id = :trade_id FOR UPDATE")

_MARK_RESOLVED_SQL = text(f"""
    UPDATE trades
    SET result = :result,
        profit = :profit,
        settlement_price = :settlement_price,
        resolved_at = NOW()
    WHERE id = :trade_id AND result = 'PENDING'
    RETURNING {_TRADE_COLUMNS}
""")

_LIST_BY_USER_SQL = text(f"""
    SELECT {_TRADE_COLUMNS}
    FROM trades
    WHERE user_id = :user_id
    ORDER BY id DESC
    LIMIT :limit
""")

_LIST_OVERDUE_SQL = text("""
    SELECT id
    FROM trades
    WHERE result = 'PENDING' AND resolve_at <= :now
    ORDER BY resolve_at
    LIMIT :limit
""")

_LIST_ALL_SQL = text(f"""
    SELECT {_TRADE_COLUMNS}
    FROM trades
    ORDER BY id DESC
    LIMIT :limit
""")

_LIST_BY_RESULT_SQL = text(f"""
    SELECT {_TRADE_COLUMNS}
    FROM trades
    WHERE result = :result
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_trade(row: object) -> Trade:
    return Trade(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        symbol=row.symbol,  # type: ignore[attr-defined]
        direction=TradeDirection(row.direction),  # type: ignore[attr-defined]
        stake=row.stake,  # type: ignore[attr-defined]
        duration=row.duration,  # type: ignore[attr-defined]
        entry_price=row.entry_price,  # type: ignore[attr-defined]
        result=TradeResult(row.result),  # type: ignore[attr-defined]
        profit=row.profit,  # type: ignore[attr-defined]
        settlement_price=row.settlement_price,  # type: ignore[attr-defined]
        opened_at=row.opened_at,  # type: ignore[attr-defined]
        resolve_at=row.resolve_at,  # type: ignore[attr-defined]
        resolved_at=row.resolved_at,  # type: ignore[attr-defined]
    )


class TradeRepository:
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
    ) -> Trade:
        result = await db.execute(
            _INSERT_TRADE_SQL,
            {
                "user_id": user_id,
                "symbol": symbol,
                "direction": direction.value,
                "stake": stake,
                "duration": duration,
                "entry_price": entry_price,
                "opened_at": opened_at,
                "resolve_at": resolve_at,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Trade insert returned no rows; this should never happen")
        return _row_to_trade(row)

    async def get(self, db: AsyncSession, trade_id: int) -> Trade | None:
        row = (await db.execute(_GET_TRADE_SQL, {"trade_id": trade_id})).fetchone()
        return _row_to_trade(row) if row else None

    async def lock(self, db: AsyncSession, trade_id: int) -> Trade | None:
        row = (await db.execute(_LOCK_TRADE_SQL, {"trade_id": trade_id})).fetchone()
        return _row_to_trade(row) if row else None

    async def mark_resolved(
        self,
        db: AsyncSession,
        trade_id: int,
        result: TradeResult,
        profit: Decimal,
        settlement_price: Decimal,
    ) -> Trade | None:
        row = (
            await db.execute(
                _MARK_RESOLVED_SQL,
                {
                    "trade_id": trade_id,
                    "result": result.value,
                    "profit": profit,
                    "settlement_price": settlement_price,
                },
            )
        ).fetchone()
        return _row_to_trade(row) if row else None

    async def list_by_user(
        self, db: AsyncSession, user_id: int, limit: int
    ) -> list[Trade]:
        result = await db.execute(_LIST_BY_USER_SQL, {"user_id": user_id, "limit": limit})
        return [_row_to_trade(r) for r in result.fetchall()]

    async def list_overdue_ids(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[int]:
        result = await db.execute(_LIST_OVERDUE_SQL, {"now": now, "limit": limit})
        return [r.id for r in result.fetchall()]  # type: ignore[attr-defined]

    async def list_all(
        self, db: AsyncSession, limit: int, result: TradeResult | None = None
    ) -> list[Trade]:
        if result is None:
            rows = await db.execute(_LIST_ALL_SQL, {"limit": limit})
        else:
            rows = await db.execute(_LIST_BY_RESULT_SQL, {"limit": limit, "result": result.value})
        return [_row_to_trade(r) for r in rows.fetchall()]
