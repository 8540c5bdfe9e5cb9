"""Settlement Engine: the only code path that mutates balances.

Every method runs inside the caller's transaction and never commits. A
failing step raises, and the caller's rollback undoes every earlier step
of the same unit of work, so no partial mutation is ever observable.

Lock ordering: any operation touching more than one row locks the main
``user_balances`` row(s) first, in coin order, before touching the earn
ledger. Opposite-direction transfers therefore queue on the same lock
instead of deadlocking.
"""

import logging
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.ex_account.domain.models import Balance, BalanceSnapshot, EarnPosition
from src.ex_account.domain.repository import BalanceRepositoryProtocol
from src.ex_account.infrastructure.persistence import BalanceRepository
from src.ex_common.enums import BalanceDirection, LedgerKind
from src.ex_common.errors import InsufficientFundsError, InvalidRequestError
from src.ex_common.money import ZERO

logger = logging.getLogger(__name__)


def _require_positive(amount: Decimal) -> None:
    if amount <= 0:
        raise InvalidRequestError(f"Settlement amount must be positive, got {amount}")


class SettlementEngine:
    def __init__(self, repo: BalanceRepositoryProtocol | None = None) -> None:
        self._repo: BalanceRepositoryProtocol = repo or BalanceRepository()

    @property
    def repo(self) -> BalanceRepositoryProtocol:
        return self._repo

    async def apply_delta(
        self,
        db: AsyncSession,
        user_id: int,
        coin: str,
        amount: Decimal,
        direction: BalanceDirection,
    ) -> Balance:
        """Credit or debit the spendable balance of one (user, coin) row.

        Credits upsert the row. Debits are conditional on ``balance >= amount``
        and raise InsufficientFundsError without side effect otherwise.
        """
        _require_positive(amount)
        if direction is BalanceDirection.CREDIT:
            return await self._repo.credit(db, user_id, coin, amount)

        balance = await self._repo.debit(db, user_id, coin, amount)
        if balance is None:
            await self._raise_insufficient(db, user_id, coin, amount)
        return balance  # type: ignore[return-value]

    async def place_hold(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal
    ) -> Balance:
        """Move ``amount`` from spendable to frozen (withdrawal request)."""
        _require_positive(amount)
        balance = await self._repo.hold(db, user_id, coin, amount)
        if balance is None:
            await self._raise_insufficient(db, user_id, coin, amount)
        return balance  # type: ignore[return-value]

    async def release_hold(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal
    ) -> Balance:
        """Return held funds to spendable (withdrawal rejected)."""
        _require_positive(amount)
        balance = await self._repo.release(db, user_id, coin, amount)
        if balance is None:
            await self._raise_insufficient(db, user_id, coin, amount, held=True)
        return balance  # type: ignore[return-value]

    async def settle_hold(
        self, db: AsyncSession, user_id: int, coin: str, amount: Decimal
    ) -> Balance:
        """Consume held funds for good (withdrawal approved).

        Re-checks ``frozen >= amount`` at decision time; a shortfall means the
        hold was lost in between and the approval must not go through.
        """
        _require_positive(amount)
        balance = await self._repo.consume_hold(db, user_id, coin, amount)
        if balance is None:
            await self._raise_insufficient(db, user_id, coin, amount, held=True)
        return balance  # type: ignore[return-value]

    async def transfer(
        self,
        db: AsyncSession,
        user_id: int,
        coin: str,
        amount: Decimal,
        source: LedgerKind,
        destination: LedgerKind,
    ) -> tuple[Balance, EarnPosition]:
        """Move funds between the main and earn ledgers of one (user, coin).

        Debit source, credit destination, both or neither. ``main + earn`` is
        unchanged by a successful transfer.
        """
        _require_positive(amount)
        if source == destination:
            raise InvalidRequestError("Transfer source and destination must differ")

        await self._repo.lock_balance(db, user_id, coin)

        if source is LedgerKind.MAIN:
            balance = await self.apply_delta(db, user_id, coin, amount, BalanceDirection.DEBIT)
            position = await self._repo.credit_earn(db, user_id, coin, amount)
            return balance, position

        debited = await self._repo.debit_earn(db, user_id, coin, amount)
        if debited is None:
            current = await self._repo.get_earn(db, user_id, coin)
            raise InsufficientFundsError(
                f"{coin} (earn)", amount, current.balance if current else ZERO
            )
        balance = await self._repo.credit(db, user_id, coin, amount)
        return balance, debited

    async def convert(
        self,
        db: AsyncSession,
        user_id: int,
        from_coin: str,
        amount: Decimal,
        to_coin: str,
        received: Decimal,
    ) -> tuple[Balance, Balance]:
        """Debit ``amount`` of ``from_coin`` and credit ``received`` of ``to_coin``."""
        _require_positive(amount)
        _require_positive(received)
        if from_coin == to_coin:
            raise InvalidRequestError("Cannot convert a coin into itself")

        for coin in sorted((from_coin, to_coin)):
            await self._repo.lock_balance(db, user_id, coin)

        debited = await self.apply_delta(db, user_id, from_coin, amount, BalanceDirection.DEBIT)
        credited = await self._repo.credit(db, user_id, to_coin, received)
        return debited, credited

    async def record_snapshot(
        self, db: AsyncSession, balance: Balance, price_usd: Decimal
    ) -> BalanceSnapshot:
        """Append the post-mutation balance to balance_history (same transaction)."""
        return await self._repo.insert_snapshot(
            db, balance.user_id, balance.coin, balance.balance, price_usd
        )

    async def _raise_insufficient(
        self,
        db: AsyncSession,
        user_id: int,
        coin: str,
        amount: Decimal,
        held: bool = False,
    ) -> None:
        current = await self._repo.get_balance(db, user_id, coin)
        if current is None:
            available = ZERO
        else:
            available = current.frozen if held else current.balance
        logger.info(
            "Rejected %s of %s %s for user %s: available %s",
            "hold settlement" if held else "debit",
            amount,
            coin,
            user_id,
            available,
        )
        raise InsufficientFundsError(f"{coin} (held)" if held else coin, amount, available)
