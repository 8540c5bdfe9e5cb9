"""Trade Lifecycle Controller: OPENING -> PENDING -> RESOLVED(WIN|LOSE).

open_trade:    validate, price (no locks held), then ONE transaction that
               debits the stake and inserts the PENDING trade; then schedule.
resolve_trade: price (no locks held), then ONE transaction that locks the
               trade, reads the overrides, marks it resolved, credits a WIN
               and appends the USDT balance snapshot.
"""

import logging
import random
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ex_clearing.domain.settlement import SettlementEngine
from src.ex_common.database import async_session_factory
from src.ex_common.datetime_utils import utc_now
from src.ex_common.enums import BalanceDirection, TradeResult
from src.ex_common.errors import (
    InsufficientFundsError,
    InvalidRequestError,
    PriceUnavailableError,
    TradeNotFoundError,
)
from src.ex_common.money import QUOTE_COIN, ZERO, parse_amount, round_price
from src.ex_market.domain.symbols import normalize_direction, price_decimals, require_supported
from src.ex_market.infrastructure.price_feed import PriceFeed, get_price_feed
from src.ex_trade.application.scheduler import TradeResolutionScheduler
from src.ex_trade.domain.models import Trade
from src.ex_trade.domain.repository import (
    TradeModeRepositoryProtocol,
    TradeRepositoryProtocol,
)
from src.ex_trade.domain.resolution import (
    clamp_duration,
    compute_profit,
    decide_outcome,
    settlement_price,
)
from src.ex_trade.infrastructure.persistence import TradeRepository
from src.ex_trade.infrastructure.trade_mode_repository import TradeModeRepository

logger = logging.getLogger(__name__)

MIN_STAKE = Decimal("1")
OVERDUE_BATCH = 500
USDT_PRICE = Decimal("1")


class ResolutionScheduler(Protocol):
    def schedule(self, trade_id: int, resolve_at: datetime) -> None: ...


class TradeService:
    def __init__(
        self,
        repo: TradeRepositoryProtocol | None = None,
        modes: TradeModeRepositoryProtocol | None = None,
        engine: SettlementEngine | None = None,
        price_feed: PriceFeed | None = None,
        scheduler: ResolutionScheduler | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._repo: TradeRepositoryProtocol = repo or TradeRepository()
        self._modes: TradeModeRepositoryProtocol = modes or TradeModeRepository()
        self._engine = engine or SettlementEngine()
        self._price_feed = price_feed
        self._scheduler = scheduler
        self._rng = rng or random.Random()

    @property
    def price_feed(self) -> PriceFeed:
        return self._price_feed or get_price_feed()

    def bind_scheduler(self, scheduler: ResolutionScheduler) -> None:
        self._scheduler = scheduler

    async def open_trade(
        self,
        db: AsyncSession,
        user_id: int,
        symbol: str,
        direction: str,
        amount: Decimal,
        duration: int,
        client_price: Decimal | None = None,
    ) -> Trade:
        sym = require_supported(symbol)
        side = normalize_direction(direction)
        stake = parse_amount(amount, QUOTE_COIN)
        if stake < MIN_STAKE:
            raise InvalidRequestError(f"Minimum stake is {MIN_STAKE} {QUOTE_COIN}")
        seconds = clamp_duration(duration)

        # Cheap pre-check before any network call; the debit re-checks under lock
        current = await self._engine.repo.get_balance(db, user_id, QUOTE_COIN)
        available = current.balance if current else ZERO
        if available < stake:
            raise InsufficientFundsError(QUOTE_COIN, stake, available)

        quote = await self.price_feed.best_effort_price(sym, client_price)
        entry_price = round_price(quote.price, price_decimals(sym))

        opened_at = utc_now()
        try:
            await self._engine.apply_delta(
                db, user_id, QUOTE_COIN, stake, BalanceDirection.DEBIT
            )
            trade = await self._repo.insert(
                db,
                user_id=user_id,
                symbol=sym,
                direction=side,
                stake=stake,
                duration=seconds,
                entry_price=entry_price,
                opened_at=opened_at,
                resolve_at=opened_at + timedelta(seconds=seconds),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Trade %s opened: user=%s %s %s stake=%s entry=%s (%s) resolves in %ss",
            trade.id, user_id, side.value, sym, stake, entry_price, quote.source, seconds,
        )
        if self._scheduler is not None:
            self._scheduler.schedule(trade.id, trade.resolve_at or opened_at)
        else:
            logger.warning("No scheduler bound; trade %s waits for the overdue sweep", trade.id)
        return trade

    async def resolve_trade(self, db: AsyncSession, trade_id: int) -> Trade | None:
        """Resolve a PENDING trade exactly once.

        A missing trade (account deleted) or an already-resolved one is a no-op.
        Any failure rolls back and re-raises, leaving the trade PENDING.
        """
        trade = await self._repo.get(db, trade_id)
        if trade is None:
            logger.warning("Trade %s no longer exists, nothing to resolve", trade_id)
            return None
        if not trade.is_pending:
            logger.info("Trade %s already resolved as %s", trade_id, trade.result.value)
            return trade

        try:
            market_price: Decimal | None = (
                await self.price_feed.fetch_spot_usd(trade.symbol)
            ).price
        except PriceUnavailableError:
            market_price = None

        try:
            locked = await self._repo.lock(db, trade_id)
            if locked is None or not locked.is_pending:
                await db.rollback()
                return locked

            user_mode = await self._modes.get_user_mode(db, locked.user_id)
            global_mode = await self._modes.get_global_mode(db)
            outcome = decide_outcome(
                locked.direction, locked.entry_price, market_price, user_mode, global_mode
            )
            profit = compute_profit(locked.stake, outcome, locked.duration)
            shown_price = settlement_price(
                locked.entry_price, locked.symbol, locked.direction, outcome, self._rng
            )

            resolved = await self._repo.mark_resolved(db, trade_id, outcome, profit, shown_price)
            if resolved is None:
                await db.rollback()
                return await self._repo.get(db, trade_id)

            if outcome is TradeResult.WIN:
                balance = await self._engine.apply_delta(
                    db, locked.user_id, QUOTE_COIN, locked.stake + profit,
                    BalanceDirection.CREDIT,
                )
            else:
                balance = await self._engine.repo.get_balance(db, locked.user_id, QUOTE_COIN)
            if balance is not None:
                await self._engine.record_snapshot(db, balance, USDT_PRICE)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Trade %s resolved %s profit=%s (user_mode=%s global=%s market=%s)",
            trade_id,
            outcome.value,
            profit,
            user_mode.value if user_mode else None,
            global_mode.value,
            market_price,
        )
        return resolved

    async def find_overdue(self, db: AsyncSession) -> list[int]:
        return await self._repo.list_overdue_ids(db, utc_now(), OVERDUE_BATCH)

    async def list_history(
        self, db: AsyncSession, user_id: int, limit: int = 50
    ) -> list[Trade]:
        return await self._repo.list_by_user(db, user_id, limit)

    async def get_trade(self, db: AsyncSession, user_id: int, trade_id: int) -> Trade:
        trade = await self._repo.get(db, trade_id)
        if trade is None or trade.user_id != user_id:
            raise TradeNotFoundError(trade_id)
        return trade


_wiring: tuple[TradeService, TradeResolutionScheduler] | None = None


def _wire() -> tuple[TradeService, TradeResolutionScheduler]:
    """Build the process-wide TradeService and its resolution scheduler together."""
    global _wiring  # noqa: PLW0603
    if _wiring is None:
        service = TradeService()
        scheduler = TradeResolutionScheduler(
            async_session_factory, service.resolve_trade, service.find_overdue
        )
        service.bind_scheduler(scheduler)
        _wiring = (service, scheduler)
    return _wiring


def get_trade_service() -> TradeService:
    return _wire()[0]


def get_trade_scheduler() -> TradeResolutionScheduler:
    return _wire()[1]
