"""In-memory stand-ins for the PostgreSQL repositories, Redis, storage and the price feed.

FakeDatabase keeps the PostgreSQL behaviour the services depend on: row locks
held until commit/rollback, conditional updates that report "no row", CHECK
(balance >= 0, frozen >= 0) constraints, and rollback restoring every row the
transaction wrote.
"""

import asyncio
import itertools
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from redis.exceptions import ConnectionError as RedisConnectionError

from src.ex_account.domain.models import (
    Balance,
    BalanceSnapshot,
    Conversion,
    DailyValue,
    EarnPosition,
)
from src.ex_common.datetime_utils import days_ago, utc_now
from src.ex_common.enums import (
    GlobalTradeMode,
    RequestKind,
    RequestStatus,
    TradeDirection,
    TradeResult,
    UserTradeMode,
)
from src.ex_common.errors import PriceUnavailableError, StorageUnavailableError
from src.ex_common.money import ZERO
from src.ex_funding.domain.models import DepositAddress, FundingRequest
from src.ex_market.domain.symbols import fallback_price, normalize_symbol
from src.ex_market.infrastructure.price_feed import PriceQuote
from src.ex_trade.domain.models import Trade

BALANCES = "user_balances"
EARN = "earn_wallet"
HISTORY = "balance_history"
CONVERSIONS = "conversions"
TRADES = "trades"
DEPOSIT_ADDRESSES = "deposit_addresses"

_MISSING = object()


class CheckViolation(Exception):
    """Raised where PostgreSQL would reject a row on a CHECK constraint."""


class FakeDatabase:
    def __init__(self) -> None:
        self.tables: dict[str, dict[Any, Any]] = defaultdict(dict)
        self._locks: dict[tuple[str, Any], asyncio.Lock] = {}
        self._ids = itertools.count(1)

    def next_id(self) -> int:
        return next(self._ids)

    def row_lock(self, table: str, key: Any) -> asyncio.Lock:
        return self._locks.setdefault((table, key), asyncio.Lock())

    def session(self) -> "FakeSession":
        return FakeSession(self)


class FakeSession:
    """One transaction at a time, like an AsyncSession."""

    def __init__(self, database: FakeDatabase) -> None:
        self.database = database
        self.commits = 0
        self.rollbacks = 0
        self._held: dict[tuple[str, Any], asyncio.Lock] = {}
        self._undo: list[tuple[str, Any, Any]] = []

    async def lock(self, table: str, key: Any) -> None:
        if (table, key) in self._held:
            return
        row_lock = self.database.row_lock(table, key)
        await row_lock.acquire()
        self._held[(table, key)] = row_lock

    async def write(self, table: str, key: Any, value: Any) -> None:
        await self.lock(table, key)
        rows = self.database.tables[table]
        self._undo.append((table, key, rows.get(key, _MISSING)))
        rows[key] = value

    async def commit(self) -> None:
        self.commits += 1
        self._undo.clear()
        self._release()

    async def rollback(self) -> None:
        self.rollbacks += 1
        for table, key, previous in reversed(self._undo):
            rows = self.database.tables[table]
            if previous is _MISSING:
                rows.pop(key, None)
            else:
                rows[key] = previous
        self._undo.clear()
        self._release()

    def _release(self) -> None:
        for row_lock in self._held.values():
            row_lock.release()
        self._held.clear()

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc: object) -> None:
        if self._held or self._undo:
            await self.rollback()


# ---------------------------------------------------------------------------
# Balances, earn wallet, history, conversions
# ---------------------------------------------------------------------------


class FakeBalanceRepository:
    def __init__(self, database: FakeDatabase) -> None:
        self.database = database

    @property
    def _rows(self) -> dict[tuple[int, str], Balance]:
        return self.database.tables[BALANCES]

    @property
    def _earn(self) -> dict[tuple[int, str], EarnPosition]:
        return self.database.tables[EARN]

    def seed(self, user_id: int, coin: str, balance: str, frozen: str = "0") -> None:
        self._rows[(user_id, coin)] = Balance(user_id, coin, Decimal(balance), Decimal(frozen))

    def seed_earn(self, user_id: int, coin: str, balance: str) -> None:
        self._earn[(user_id, coin)] = EarnPosition(user_id, coin, Decimal(balance))

    def snapshots(self, user_id: int) -> list[BalanceSnapshot]:
        rows = self.database.tables[HISTORY].values()
        return sorted((s for s in rows if s.user_id == user_id), key=lambda s: s.id)

    async def _store(self, db: FakeSession, row: Balance) -> Balance:
        if row.balance < 0 or row.frozen < 0:
            raise CheckViolation(f"user_balances check violated: {row}")
        await db.write(BALANCES, (row.user_id, row.coin), replace(row, updated_at=utc_now()))
        return replace(row)

    async def _locked_row(self, db: FakeSession, user_id: int, coin: str) -> Balance | None:
        await db.lock(BALANCES, (user_id, coin))
        # Yield so concurrent callers interleave at the lock boundary
        await asyncio.sleep(0)
        return self._rows.get((user_id, coin))

    async def get_balance(self, db: FakeSession, user_id: int, coin: str) -> Balance | None:
        row = self._rows.get((user_id, coin))
        return replace(row) if row else None

    async def list_balances(self, db: FakeSession, user_id: int) -> list[Balance]:
        return [replace(b) for (uid, _), b in sorted(self._rows.items()) if uid == user_id]

    async def lock_balance(self, db: FakeSession, user_id: int, coin: str) -> Balance | None:
        row = await self._locked_row(db, user_id, coin)
        return replace(row) if row else None

    async def create_default_balances(
        self, db: FakeSession, user_id: int, coins: tuple[str, ...]
    ) -> None:
        for coin in coins:
            if (user_id, coin) not in self._rows:
                await self._store(db, Balance(user_id, coin, ZERO))

    async def credit(self, db: FakeSession, user_id: int, coin: str, amount: Decimal) -> Balance:
        row = await self._locked_row(db, user_id, coin) or Balance(user_id, coin, ZERO)
        return await self._store(db, replace(row, balance=row.balance + amount))

    async def debit(
        self, db: FakeSession, user_id: int, coin: str, amount: Decimal
    ) -> Balance | None:
        row = await self._locked_row(db, user_id, coin)
        if row is None or row.balance < amount:
            return None
        return await self._store(db, replace(row, balance=row.balance - amount))

    async def hold(
        self, db: FakeSession, user_id: int, coin: str, amount: Decimal
    ) -> Balance | None:
        row = await self._locked_row(db, user_id, coin)
        if row is None or row.balance < amount:
            return None
        return await self._store(
            db, replace(row, balance=row.balance - amount, frozen=row.frozen + amount)
        )

    async def release(
        self, db: FakeSession, user_id: int, coin: str, amount: Decimal
    ) -> Balance | None:
        row = await self._locked_row(db, user_id, coin)
        if row is None or row.frozen < amount:
            return None
        return await self._store(
            db, replace(row, balance=row.balance + amount, frozen=row.frozen - amount)
        )

    async def consume_hold(
        self, db: FakeSession, user_id: int, coin: str, amount: Decimal
    ) -> Balance | None:
        row = await self._locked_row(db, user_id, coin)
        if row is None or row.frozen < amount:
            return None
        return await self._store(db, replace(row, frozen=row.frozen - amount))

    async def get_earn(self, db: FakeSession, user_id: int, coin: str) -> EarnPosition | None:
        row = self._earn.get((user_id, coin))
        return replace(row) if row else None

    async def list_earn(self, db: FakeSession, user_id: int) -> list[EarnPosition]:
        return [replace(p) for (uid, _), p in sorted(self._earn.items()) if uid == user_id]

    async def credit_earn(
        self, db: FakeSession, user_id: int, coin: str, amount: Decimal
    ) -> EarnPosition:
        await db.lock(EARN, (user_id, coin))
        row = self._earn.get((user_id, coin)) or EarnPosition(user_id, coin, ZERO)
        updated = replace(row, balance=row.balance + amount)
        await db.write(EARN, (user_id, coin), updated)
        return replace(updated)

    async def debit_earn(
        self, db: FakeSession, user_id: int, coin: str, amount: Decimal
    ) -> EarnPosition | None:
        await db.lock(EARN, (user_id, coin))
        row = self._earn.get((user_id, coin))
        if row is None or row.balance < amount:
            return None
        updated = replace(row, balance=row.balance - amount)
        await db.write(EARN, (user_id, coin), updated)
        return replace(updated)

    async def insert_snapshot(
        self,
        db: FakeSession,
        user_id: int,
        coin: str,
        balance: Decimal,
        price_usd: Decimal,
    ) -> BalanceSnapshot:
        snapshot = BalanceSnapshot(
            self.database.next_id(), user_id, coin, balance, price_usd, utc_now()
        )
        await db.write(HISTORY, snapshot.id, snapshot)
        return snapshot

    async def daily_history(self, db: FakeSession, user_id: int, days: int) -> list[DailyValue]:
        since = days_ago(days)
        latest: dict[tuple[Any, str], BalanceSnapshot] = {}
        for snap in self.snapshots(user_id):
            if snap.created_at is not None and snap.created_at >= since:
                latest[(snap.created_at.date(), snap.coin)] = snap
        totals: dict[Any, Decimal] = defaultdict(Decimal)
        for (day, _), snap in latest.items():
            totals[day] += snap.balance * snap.price_usd
        return [DailyValue(day, totals[day]) for day in sorted(totals)]

    async def insert_conversion(
        self,
        db: FakeSession,
        user_id: int,
        from_coin: str,
        to_coin: str,
        amount: Decimal,
        received: Decimal,
        rate: Decimal,
    ) -> Conversion:
        conversion = Conversion(
            self.database.next_id(), user_id, from_coin, to_coin, amount, received, rate, utc_now()
        )
        await db.write(CONVERSIONS, conversion.id, conversion)
        return conversion

    async def list_conversions(self, db: FakeSession, user_id: int, limit: int) -> list[Conversion]:
        rows = [c for c in self.database.tables[CONVERSIONS].values() if c.user_id == user_id]
        return sorted(rows, key=lambda c: c.id, reverse=True)[:limit]


# ---------------------------------------------------------------------------
# Trades and trade modes
# ---------------------------------------------------------------------------


class FakeTradeRepository:
    def __init__(self, database: FakeDatabase) -> None:
        self.database = database

    @property
    def _rows(self) -> dict[int, Trade]:
        return self.database.tables[TRADES]

    def delete_for_user(self, user_id: int) -> None:
        for trade_id in [t.id for t in self._rows.values() if t.user_id == user_id]:
            del self._rows[trade_id]

    async def insert(
        self,
        db: FakeSession,
        user_id: int,
        symbol: str,
        direction: TradeDirection,
        stake: Decimal,
        duration: int,
        entry_price: Decimal,
        opened_at: datetime,
        resolve_at: datetime,
    ) -> Trade:
        trade = Trade(
            id=self.database.next_id(),
            user_id=user_id,
            symbol=symbol,
            direction=direction,
            stake=stake,
            duration=duration,
            entry_price=entry_price,
            opened_at=opened_at,
            resolve_at=resolve_at,
        )
        await db.write(TRADES, trade.id, trade)
        return replace(trade)

    async def get(self, db: FakeSession, trade_id: int) -> Trade | None:
        row = self._rows.get(trade_id)
        return replace(row) if row else None

    async def lock(self, db: FakeSession, trade_id: int) -> Trade | None:
        await db.lock(TRADES, trade_id)
        return await self.get(db, trade_id)

    async def mark_resolved(
        self,
        db: FakeSession,
        trade_id: int,
        result: TradeResult,
        profit: Decimal,
        settlement_price: Decimal,
    ) -> Trade | None:
        await db.lock(TRADES, trade_id)
        row = self._rows.get(trade_id)
        if row is None or not row.is_pending:
            return None
        updated = replace(
            row,
            result=result,
            profit=profit,
            settlement_price=settlement_price,
            resolved_at=utc_now(),
        )
        await db.write(TRADES, trade_id, updated)
        return replace(updated)

    async def list_by_user(self, db: FakeSession, user_id: int, limit: int) -> list[Trade]:
        rows = [replace(t) for t in self._rows.values() if t.user_id == user_id]
        return sorted(rows, key=lambda t: t.id, reverse=True)[:limit]

    async def list_overdue_ids(self, db: FakeSession, now: datetime, limit: int) -> list[int]:
        due = [
            t for t in self._rows.values()
            if t.is_pending and t.resolve_at is not None and t.resolve_at <= now
        ]
        return [t.id for t in sorted(due, key=lambda t: (t.resolve_at, t.id))][:limit]

    async def list_all(
        self, db: FakeSession, limit: int, result: TradeResult | None = None
    ) -> list[Trade]:
        rows = [replace(t) for t in self._rows.values() if result is None or t.result is result]
        return sorted(rows, key=lambda t: t.id, reverse=True)[:limit]


class FakeTradeModeRepository:
    def __init__(self, global_mode: GlobalTradeMode = GlobalTradeMode.AUTO) -> None:
        self.user_modes: dict[int, UserTradeMode] = {}
        self.global_mode = global_mode

    async def get_user_mode(self, db: FakeSession, user_id: int) -> UserTradeMode | None:
        return self.user_modes.get(user_id)

    async def set_user_mode(self, db: FakeSession, user_id: int, mode: UserTradeMode) -> None:
        self.user_modes[user_id] = mode

    async def clear_user_mode(self, db: FakeSession, user_id: int) -> bool:
        return self.user_modes.pop(user_id, None) is not None

    async def list_user_modes(self, db: FakeSession) -> list[tuple[int, UserTradeMode]]:
        return sorted(self.user_modes.items())

    async def get_global_mode(self, db: FakeSession) -> GlobalTradeMode:
        return self.global_mode

    async def set_global_mode(self, db: FakeSession, mode: GlobalTradeMode) -> None:
        self.global_mode = mode


# ---------------------------------------------------------------------------
# Deposit / withdrawal requests
# ---------------------------------------------------------------------------


_REQUEST_TABLES = {RequestKind.DEPOSIT: "deposits", RequestKind.WITHDRAWAL: "withdrawals"}


class FakeFundingRepository:
    def __init__(self, database: FakeDatabase) -> None:
        self.database = database

    def _rows(self, kind: RequestKind) -> dict[int, FundingRequest]:
        return self.database.tables[_REQUEST_TABLES[kind]]

    async def insert(
        self,
        db: FakeSession,
        kind: RequestKind,
        user_id: int,
        coin: str,
        amount: Decimal,
        address: str | None,
        proof_url: str | None = None,
    ) -> FundingRequest:
        request = FundingRequest(
            id=self.database.next_id(),
            kind=kind,
            user_id=user_id,
            coin=coin,
            amount=amount,
            address=address,
            proof_url=proof_url,
            created_at=utc_now(),
        )
        await db.write(_REQUEST_TABLES[kind], request.id, request)
        return replace(request)

    async def get(self, db: FakeSession, kind: RequestKind, request_id: int) -> FundingRequest | None:
        row = self._rows(kind).get(request_id)
        return replace(row) if row else None

    async def lock(
        self, db: FakeSession, kind: RequestKind, request_id: int
    ) -> FundingRequest | None:
        await db.lock(_REQUEST_TABLES[kind], request_id)
        await asyncio.sleep(0)
        return await self.get(db, kind, request_id)

    async def set_status(
        self,
        db: FakeSession,
        kind: RequestKind,
        request_id: int,
        status: RequestStatus,
    ) -> FundingRequest | None:
        await db.lock(_REQUEST_TABLES[kind], request_id)
        row = self._rows(kind).get(request_id)
        if row is None or not row.is_pending:
            return None
        updated = replace(row, status=status, reviewed_at=utc_now())
        await db.write(_REQUEST_TABLES[kind], request_id, updated)
        return replace(updated)

    async def list_by_user(
        self, db: FakeSession, kind: RequestKind, user_id: int, limit: int
    ) -> list[FundingRequest]:
        rows = [replace(r) for r in self._rows(kind).values() if r.user_id == user_id]
        return sorted(rows, key=lambda r: r.id, reverse=True)[:limit]

    async def list_all(
        self,
        db: FakeSession,
        kind: RequestKind,
        limit: int,
        status: RequestStatus | None = None,
    ) -> list[FundingRequest]:
        rows = [
            replace(r) for r in self._rows(kind).values() if status is None or r.status is status
        ]
        return sorted(rows, key=lambda r: r.id, reverse=True)[:limit]


class FakeDepositAddressRepository:
    def __init__(self, database: FakeDatabase) -> None:
        self.database = database

    def _rows(self) -> dict[str, DepositAddress]:
        return self.database.tables[DEPOSIT_ADDRESSES]

    async def list_all(self, db: FakeSession) -> list[DepositAddress]:
        return [replace(self._rows()[coin]) for coin in sorted(self._rows())]

    async def get(self, db: FakeSession, coin: str) -> DepositAddress | None:
        row = self._rows().get(coin)
        return replace(row) if row else None

    async def upsert(
        self, db: FakeSession, coin: str, address: str, qr_url: str | None
    ) -> DepositAddress:
        current = self._rows().get(coin)
        kept_qr = qr_url if qr_url is not None else (current.qr_url if current else None)
        row = DepositAddress(coin=coin, address=address, qr_url=kept_qr, updated_at=utc_now())
        await db.write(DEPOSIT_ADDRESSES, coin, row)
        return replace(row)


# ---------------------------------------------------------------------------
# Collaborators outside the database
# ---------------------------------------------------------------------------


class FakePriceFeed:
    """Serves fixed prices; symbols without one behave like a provider outage."""

    def __init__(self, prices: dict[str, str] | None = None) -> None:
        self.prices = {k: Decimal(v) for k, v in (prices or {}).items()}
        self.calls: list[str] = []

    async def fetch_spot_usd(self, symbol: str) -> PriceQuote:
        sym = normalize_symbol(symbol)
        self.calls.append(sym)
        if sym == "USDT":
            return PriceQuote(sym, Decimal("1"), "peg")
        if sym not in self.prices:
            raise PriceUnavailableError(sym)
        return PriceQuote(sym, self.prices[sym], "fake")

    async def best_effort_price(
        self, symbol: str, client_price: Decimal | None = None
    ) -> PriceQuote:
        sym = normalize_symbol(symbol)
        try:
            return await self.fetch_spot_usd(sym)
        except PriceUnavailableError:
            pass
        if client_price is not None and client_price > 0:
            return PriceQuote(sym, client_price, "client")
        return PriceQuote(sym, fallback_price(sym), "fallback")


class RecordingScheduler:
    def __init__(self) -> None:
        self.scheduled: list[tuple[int, datetime]] = []

    def schedule(self, trade_id: int, resolve_at: datetime) -> None:
        self.scheduled.append((trade_id, resolve_at))


class FakeRedis:
    """The handful of Redis commands used for codes and rate limits."""

    def __init__(self, down: bool = False) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.down = down

    def _check(self) -> None:
        if self.down:
            raise RedisConnectionError("connection refused")

    async def get(self, key: str) -> str | None:
        self._check()
        return self.values.get(key)

    async def set(self, key: str, value: object, ex: int | None = None) -> bool:
        self._check()
        self.values[key] = str(value)
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            removed += self.values.pop(key, None) is not None
            self.ttls.pop(key, None)
        return removed

    async def incr(self, key: str) -> int:
        self._check()
        value = int(self.values.get(key, "0")) + 1
        self.values[key] = str(value)
        return value

    async def expire(self, key: str, seconds: int) -> bool:
        self._check()
        self.ttls[key] = seconds
        return key in self.values

    async def ttl(self, key: str) -> int:
        self._check()
        if key not in self.values:
            return -2
        return self.ttls.get(key, -1)


class RecordingStorage:
    """ObjectStorage keeping uploads in memory; ``fail`` simulates an outage."""

    def __init__(self, fail: bool = False) -> None:
        self.objects: dict[str, bytes] = {}
        self.fail = fail

    async def put(self, bucket: str, key: str, data: bytes, content_type: str) -> str:
        if self.fail:
            raise StorageUnavailableError(f"could not store {bucket}/{key}")
        self.objects[f"{bucket}/{key}"] = data
        return f"http://files/{bucket}/{key}"
