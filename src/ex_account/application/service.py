"""Account application service: balances, history, conversions and earn.

Reads go straight to the repository. Mutations run through the
SettlementEngine inside one transaction that this service commits (or rolls
back and re-raises). Prices are fetched before the transaction begins.
"""

import logging
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.ex_account.domain.models import Balance, Conversion, DailyValue, EarnPosition
from src.ex_account.domain.repository import BalanceRepositoryProtocol
from src.ex_clearing.domain.settlement import SettlementEngine
from src.ex_common.enums import LedgerKind
from src.ex_common.errors import AccountNotFoundError, InvalidRequestError
from src.ex_common.money import (
    MAX_AMOUNT,
    QUOTE_COIN,
    SUPPORTED_COINS,
    ZERO,
    normalize_coin,
    parse_amount,
    quantize_down,
)
from src.ex_market.infrastructure.price_feed import PriceFeed, get_price_feed

logger = logging.getLogger(__name__)

HISTORY_DAYS = 30


class AccountService:
    def __init__(
        self,
        engine: SettlementEngine | None = None,
        price_feed: PriceFeed | None = None,
    ) -> None:
        self._engine = engine or SettlementEngine()
        self._price_feed = price_feed

    @property
    def _repo(self) -> BalanceRepositoryProtocol:
        return self._engine.repo

    @property
    def price_feed(self) -> PriceFeed:
        return self._price_feed or get_price_feed()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_balances(self, db: AsyncSession, user_id: int) -> list[Balance]:
        """Every supported coin (zero when no row exists), then any extra rows."""
        rows = {b.coin: b for b in await self._repo.list_balances(db, user_id)}
        result = [rows.pop(coin, None) or Balance(user_id, coin, ZERO) for coin in SUPPORTED_COINS]
        result.extend(rows[c] for c in sorted(rows))
        return result

    async def get_balance(self, db: AsyncSession, user_id: int, coin: str) -> Balance:
        code = normalize_coin(coin)
        balance = await self._repo.get_balance(db, user_id, code)
        if balance is None:
            raise AccountNotFoundError(user_id, code)
        return balance

    async def balance_history(
        self, db: AsyncSession, user_id: int, days: int = HISTORY_DAYS
    ) -> list[DailyValue]:
        return await self._repo.daily_history(db, user_id, days)

    async def list_conversions(
        self, db: AsyncSession, user_id: int, limit: int = 50
    ) -> list[Conversion]:
        return await self._repo.list_conversions(db, user_id, limit)

    async def earn_balances(self, db: AsyncSession, user_id: int) -> list[EarnPosition]:
        return await self._repo.list_earn(db, user_id)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def convert(
        self,
        db: AsyncSession,
        user_id: int,
        from_coin: str,
        to_coin: str,
        amount: Decimal | str,
    ) -> Conversion:
        """Swap USDT <-> coin at one live spot rate.

        ``rate`` is the USD price of the non-USDT side. Proceeds are rounded
        down to the receiving coin's precision. No live price, no conversion.
        """
        sold = normalize_coin(from_coin)
        bought = normalize_coin(to_coin)
        if sold == bought or QUOTE_COIN not in (sold, bought):
            raise InvalidRequestError("Conversions must be between USDT and another coin")
        spend = parse_amount(amount, sold)

        coin = bought if sold == QUOTE_COIN else sold
        quote = await self.price_feed.fetch_spot_usd(coin)
        rate = quote.price
        proceeds = spend / rate if sold == QUOTE_COIN else spend * rate
        if proceeds >= MAX_AMOUNT:
            raise InvalidRequestError(
                f"{spend} {sold} converts to more {bought} than an account can hold"
            )
        received = quantize_down(proceeds, bought)
        if received <= 0:
            raise InvalidRequestError(f"{spend} {sold} is too small to convert into {bought}")

        try:
            debited, credited = await self._engine.convert(db, user_id, sold, spend, bought, received)
            await self._engine.record_snapshot(db, debited, rate if sold == coin else Decimal(1))
            await self._engine.record_snapshot(db, credited, rate if bought == coin else Decimal(1))
            conversion = await self._repo.insert_conversion(
                db, user_id, sold, bought, spend, received, rate
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "User %s converted %s %s -> %s %s @ %s (%s)",
            user_id, spend, sold, received, bought, rate, quote.source,
        )
        return conversion

    async def earn_deposit(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal | str
    ) -> tuple[Balance, EarnPosition]:
        """Move funds from the main balance into the earn wallet."""
        return await self._earn_transfer(db, user_id, coin, amount, LedgerKind.MAIN, LedgerKind.EARN)

    async def earn_withdraw(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal | str
    ) -> tuple[Balance, EarnPosition]:
        """Move funds from the earn wallet back to the main balance."""
        return await self._earn_transfer(db, user_id, coin, amount, LedgerKind.EARN, LedgerKind.MAIN)

    async def _earn_transfer(
        self,
        db: AsyncSession,
        user_id: int,
        coin: str,
        amount: Decimal | str,
        source: LedgerKind,
        destination: LedgerKind,
    ) -> tuple[Balance, EarnPosition]:
        code = normalize_coin(coin)
        value = parse_amount(amount, code)
        try:
            result = await self._engine.transfer(db, user_id, code, value, source, destination)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return result


_account_service: AccountService | None = None


def get_account_service() -> AccountService:
    global _account_service  # noqa: PLW0603
    if _account_service is None:
        _account_service = AccountService()
    return _account_service
