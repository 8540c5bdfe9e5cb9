"""BalanceRepository: PostgreSQL implementation of BalanceRepositoryProtocol.

Every conditional mutation is a single ``UPDATE ... WHERE <sufficient> RETURNING``.
PostgreSQL takes the row lock for the UPDATE and re-evaluates the WHERE clause
after any lock wait, so check-and-mutate is serialized per (user_id, coin).
A result of 0 rows means the sufficiency predicate failed.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from decimal import Decimal

from sqlalchemy import TextClause, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ex_account.domain.models import (
    Balance,
    BalanceSnapshot,
    Conversion,
    DailyValue,
    EarnPosition,
)
from src.ex_common.errors import InternalError

_BALANCE_COLUMNS = "user_id, coin, balance, frozen, updated_at"

# ---------------------------------------------------------------------------
# SQL: main ledger (user_balances)
# ---------------------------------------------------------------------------

_GET_BALANCE_SQL = text(f"""
    SELECT {_BALANCE_COLUMNS}
    FROM user_balances
    WHERE user_id = :user_id AND coin = :coin
""")

_LOCK_BALANCE_SQL = text(f"""
    SELECT {_BALANCE_COLUMNS}
    FROM user_balances
    WHERE user_id = :user_id AND coin = :coin
    FOR UPDATE
""")

_LIST_BALANCES_SQL = text(f"""
    SELECT {_BALANCE_COLUMNS}
    FROM user_balances
    WHERE user_id = :user_id
    ORDER BY coin
""")

_CREATE_DEFAULT_SQL = text("""
    INSERT INTO user_balances (user_id, coin, balance, frozen)
    VALUES (:user_id, :coin, 0, 0)
    ON CONFLICT (user_id, coin) DO NOTHING
""")

_CREDIT_SQL = text(f"""
    INSERT INTO user_balances (user_id, coin, balance, frozen)
    VALUES (:user_id, :coin, :amount, 0)
    ON CONFLICT (user_id, coin) DO UPDATE
        SET balance = user_balances.balance + EXCLUDED.balance,
            version = user_balances.version + 1
    RETURNING {_BALANCE_COLUMNS}
""")

_DEBIT_SQL = text(f"""
    UPDATE user_balances
    SET balance = balance - :amount,
        version = version + 1
    WHERE user_id = :user_id AND coin = :coin AND balance >= :amount
    RETURNING {_BALANCE_COLUMNS}
""")

_HOLD_SQL = text(f"""
    UPDATE user_balances
    SET balance = balance - :amount,
        frozen  = frozen  + :amount,
        version = version + 1
    WHERE user_id = :user_id AND coin = :coin AND balance >= :amount
    RETURNING {_BALANCE_COLUMNS}
""")

_RELEASE_SQL = text(f"""
    UPDATE user_balances
    SET balance = balance + :amount,
        frozen  = frozen  - :amount,
        version = version + 1
    WHERE user_id = :user_id AND coin = :coin AND frozen >= :amount
    RETURNING {_BALANCE_COLUMNS}
""")

_CONSUME_HOLD_SQL = text(f"""
    UPDATE user_balances
    SET frozen  = frozen - :amount,
        version = version + 1
    WHERE user_id = :user_id AND coin = :coin AND frozen >= :amount
    RETURNING {_BALANCE_COLUMNS}
""")

# ---------------------------------------------------------------------------
# SQL: earn ledger (earn_wallet)
# ---------------------------------------------------------------------------

_GET_EARN_SQL = text("""
    SELECT user_id, coin, balance, updated_at
    FROM earn_wallet
    WHERE user_id = :user_id AND coin = :coin
""")

_LIST_EARN_SQL = text("""
    SELECT user_id, coin, balance, updated_at
    FROM earn_wallet
    WHERE user_id = :user_id AND balance > 0
    ORDER BY coin
""")

_CREDIT_EARN_SQL = text("""
    INSERT INTO earn_wallet (user_id, coin, balance)
    VALUES (:user_id, :coin, :amount)
    ON CONFLICT (user_id, coin) DO UPDATE
        SET balance = earn_wallet.balance + EXCLUDED.balance
    RETURNING user_id, coin, balance, updated_at
""")

_DEBIT_EARN_SQL = text("""
    UPDATE earn_wallet
    SET balance = balance - :amount
    WHERE user_id = :user_id AND coin = :coin AND balance >= :amount
    RETURNING user_id, coin, balance, updated_at
""")

# ---------------------------------------------------------------------------
# SQL: audit trail
# ---------------------------------------------------------------------------

_INSERT_SNAPSHOT_SQL = text("""
    INSERT INTO balance_history (user_id, coin, balance, price_usd)
    VALUES (:user_id, :coin, :balance, :price_usd)
    RETURNING id, user_id, coin, balance, price_usd, created_at
""")

# Latest snapshot per (day, coin), valued in USD and summed per day
_DAILY_HISTORY_SQL = text("""
    SELECT day, SUM(balance * price_usd) AS value_usd
    FROM (
        SELECT DISTINCT ON (DATE(created_at), coin)
               DATE(created_at) AS day, coin, balance, price_usd
        FROM balance_history
        WHERE user_id = :user_id
          AND created_at >= NOW() - make_interval(days => :days)
        ORDER BY DATE(created_at), coin, created_at DESC, id DESC
    ) latest
    GROUP BY day
    ORDER BY day
""")

_INSERT_CONVERSION_SQL = text("""
    INSERT INTO conversions (user_id, from_coin, to_coin, amount, received, rate)
    VALUES (:user_id, :from_coin, :to_coin, :amount, :received, :rate)
    RETURNING id, user_id, from_coin, to_coin, amount, received, rate, created_at
""")

_LIST_CONVERSIONS_SQL = text("""
    SELECT id, user_id, from_coin, to_coin, amount, received, rate, created_at
    FROM conversions
    WHERE user_id = :user_id
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_balance(row: object) -> Balance:
    return Balance(
        user_id=row.user_id,  # type: ignore[attr-defined]
        coin=row.coin,  # type: ignore[attr-defined]
        balance=row.balance,  # type: ignore[attr-defined]
        frozen=row.frozen,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_earn(row: object) -> EarnPosition:
    return EarnPosition(
        user_id=row.user_id,  # type: ignore[attr-defined]
        coin=row.coin,  # type: ignore[attr-defined]
        balance=row.balance,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_snapshot(row: object) -> BalanceSnapshot:
    return BalanceSnapshot(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        coin=row.coin,  # type: ignore[attr-defined]
        balance=row.balance,  # type: ignore[attr-defined]
        price_usd=row.price_usd,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _row_to_conversion(row: object) -> Conversion:
    return Conversion(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        from_coin=row.from_coin,  # type: ignore[attr-defined]
        to_coin=row.to_coin,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        received=row.received,  # type: ignore[attr-defined]
        rate=row.rate,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class BalanceRepository:
    """Concrete Balance Store: all mutations atomic at the SQL level."""

    async def get_balance(
        self, db: AsyncSession, user_id: int, coin: str
    ) -> Balance | None:
        result = await db.execute(_GET_BALANCE_SQL, {"user_id": user_id, "coin": coin})
        row = result.fetchone()
        return _row_to_balance(row) if row else None

    async def list_balances(self, db: AsyncSession, user_id: int) -> list[Balance]:
        result = await db.execute(_LIST_BALANCES_SQL, {"user_id": user_id})
        return [_row_to_balance(r) for r in result.fetchall()]

    async def lock_balance(
        self, db: AsyncSession, user_id: int, coin: str
    ) -> Balance | None:
        result = await db.execute(_LOCK_BALANCE_SQL, {"user_id": user_id, "coin": coin})
        row = result.fetchone()
        return _row_to_balance(row) if row else None

    async def create_default_balances(
        self, db: AsyncSession, user_id: int, coins: tuple[str, ...]
    ) -> None:
        await db.execute(
            _CREATE_DEFAULT_SQL,
            [{"user_id": user_id, "coin": coin} for coin in coins],
        )

    async def credit(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal
    ) -> Balance:
        result = await db.execute(
            _CREDIT_SQL, {"user_id": user_id, "coin": coin, "amount": amount}
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Balance upsert returned no rows; this should never happen")
        return _row_to_balance(row)

    async def debit(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal
    ) -> Balance | None:
        return await self._conditional(_DEBIT_SQL, db, user_id, coin, amount)

    async def hold(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal
    ) -> Balance | None:
        return await self._conditional(_HOLD_SQL, db, user_id, coin, amount)

    async def release(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal
    ) -> Balance | None:
        return await self._conditional(_RELEASE_SQL, db, user_id, coin, amount)

    async def consume_hold(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal
    ) -> Balance | None:
        return await self._conditional(_CONSUME_HOLD_SQL, db, user_id, coin, amount)

    async def _conditional(
        self,
        sql: TextClause,
        db: AsyncSession,
        user_id: int,
        coin: str,
        amount: Decimal,
    ) -> Balance | None:
        result = await db.execute(
            sql, {"user_id": user_id, "coin": coin, "amount": amount}
        )
        row = result.fetchone()
        return _row_to_balance(row) if row else None

    # --- earn ledger ---

    async def get_earn(
        self, db: AsyncSession, user_id: int, coin: str
    ) -> EarnPosition | None:
        result = await db.execute(_GET_EARN_SQL, {"user_id": user_id, "coin": coin})
        row = result.fetchone()
        return _row_to_earn(row) if row else None

    async def list_earn(self, db: AsyncSession, user_id: int) -> list[EarnPosition]:
        result = await db.execute(_LIST_EARN_SQL, {"user_id": user_id})
        return [_row_to_earn(r) for r in result.fetchall()]

    async def credit_earn(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal
    ) -> EarnPosition:
        result = await db.execute(
            _CREDIT_EARN_SQL, {"user_id": user_id, "coin": coin, "amount": amount}
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Earn upsert returned no rows; this should never happen")
        return _row_to_earn(row)

    async def debit_earn(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal
    ) -> EarnPosition | None:
        result = await db.execute(
            _DEBIT_EARN_SQL, {"user_id": user_id, "coin": coin, "amount": amount}
        )
        row = result.fetchone()
        return _row_to_earn(row) if row else None

    # --- audit trail ---

    async def insert_snapshot(
        self,
        db: AsyncSession,
        user_id: int,
        coin: str,
        balance: Decimal,
        price_usd: Decimal,
    ) -> BalanceSnapshot:
        result = await db.execute(
            _INSERT_SNAPSHOT_SQL,
            {"user_id": user_id, "coin": coin, "balance": balance, "price_usd": price_usd},
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Snapshot insert returned no rows; this should never happen")
        return _row_to_snapshot(row)

    async def daily_history(
        self, db: AsyncSession, user_id: int, days: int
    ) -> list[DailyValue]:
        result = await db.execute(_DAILY_HISTORY_SQL, {"user_id": user_id, "days": days})
        return [
            DailyValue(day=r.day, value_usd=r.value_usd)  # type: ignore[attr-defined]
            for r in result.fetchall()
        ]

    async def insert_conversion(
        self,
        db: AsyncSession,
        user_id: int,
        from_coin: str,
        to_coin: str,
        amount: Decimal,
        received: Decimal,
        rate: Decimal,
    ) -> Conversion:
        result = await db.execute(
            _INSERT_CONVERSION_SQL,
            {
                "user_id": user_id,
                "from_coin": from_coin,
                "to_coin": to_coin,
                "amount": amount,
                "received": received,
                "rate": rate,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Conversion insert returned no rows; this should never happen")
        return _row_to_conversion(row)

    async def list_conversions(
        self, db: AsyncSession, user_id: int, limit: int
    ) -> list[Conversion]:
        result = await db.execute(_LIST_CONVERSIONS_SQL, {"user_id": user_id, "limit": limit})
        return [_row_to_conversion(r) for r in result.fetchall()]
