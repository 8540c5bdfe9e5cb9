"""Unit tests for AccountService: balances, conversions, history and earn."""

from decimal import Decimal

import pytest
from ledger_fakes import FakeBalanceRepository, FakeDatabase, FakePriceFeed

from src.ex_account.application.service import AccountService
from src.ex_clearing.domain.settlement import SettlementEngine
from src.ex_common.errors import (
    AccountNotFoundError,
    InsufficientFundsError,
    InvalidRequestError,
    PriceUnavailableError,
)
from src.ex_common.money import SUPPORTED_COINS


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def balances(database: FakeDatabase) -> FakeBalanceRepository:
    repo = FakeBalanceRepository(database)
    repo.seed(1, "USDT", "100")
    return repo


@pytest.fixture
def service(balances: FakeBalanceRepository) -> AccountService:
    return AccountService(
        engine=SettlementEngine(repo=balances),
        price_feed=FakePriceFeed({"BTC": "65000", "XRP": "0.6"}),
    )


async def _amount(balances: FakeBalanceRepository, coin: str) -> Decimal:
    row = await balances.get_balance(None, 1, coin)
    return row.balance if row else Decimal(0)


class TestBalances:
    async def test_every_supported_coin_listed(
        self, database: FakeDatabase, service: AccountService
    ) -> None:
        rows = await service.get_balances(database.session(), 1)
        assert tuple(b.coin for b in rows) == SUPPORTED_COINS
        assert rows[0].balance == Decimal("100")
        assert all(b.balance == 0 for b in rows[1:])

    async def test_single_coin(self, database: FakeDatabase, service: AccountService) -> None:
        balance = await service.get_balance(database.session(), 1, "usdt")
        assert balance.total == Decimal("100")

    async def test_missing_row(self, database: FakeDatabase, service: AccountService) -> None:
        with pytest.raises(AccountNotFoundError):
            await service.get_balance(database.session(), 1, "BTC")


class TestConvert:
    async def test_usdt_to_coin(
        self, database: FakeDatabase, balances: FakeBalanceRepository, service: AccountService
    ) -> None:
        conversion = await service.convert(database.session(), 1, "USDT", "BTC", "65")

        assert conversion.received == Decimal("0.00100000")
        assert conversion.rate == Decimal("65000")
        assert await _amount(balances, "USDT") == Decimal("35")
        assert await _amount(balances, "BTC") == Decimal("0.001")
        assert [(s.coin, s.balance, s.price_usd) for s in balances.snapshots(1)] == [
            ("USDT", Decimal("35"), Decimal("1")),
            ("BTC", Decimal("0.001"), Decimal("65000")),
        ]

    async def test_coin_to_usdt(
        self, database: FakeDatabase, balances: FakeBalanceRepository, service: AccountService
    ) -> None:
        balances.seed(1, "BTC", "0.5")
        conversion = await service.convert(database.session(), 1, "btc", "usdt", "0.1")
        assert conversion.received == Decimal("6500.00")
        assert await _amount(balances, "USDT") == Decimal("6600")
        assert await _amount(balances, "BTC") == Decimal("0.4")

    async def test_proceeds_round_down(
        self, database: FakeDatabase, balances: FakeBalanceRepository, service: AccountService
    ) -> None:
        conversion = await service.convert(database.session(), 1, "USDT", "XRP", "1")
        assert conversion.received == Decimal("1.6666")

    @pytest.mark.parametrize(("src_coin", "dst_coin"), [("BTC", "ETH"), ("USDT", "USDT")])
    async def test_requires_exactly_one_usdt_side(
        self, database: FakeDatabase, service: AccountService, src_coin: str, dst_coin: str
    ) -> None:
        with pytest.raises(InvalidRequestError):
            await service.convert(database.session(), 1, src_coin, dst_coin, "1")

    async def test_no_live_price_no_conversion(
        self, database: FakeDatabase, balances: FakeBalanceRepository, service: AccountService
    ) -> None:
        with pytest.raises(PriceUnavailableError):
            await service.convert(database.session(), 1, "USDT", "ETH", "10")
        assert await _amount(balances, "USDT") == Decimal("100")

    async def test_dust_rejected(
        self, database: FakeDatabase, balances: FakeBalanceRepository, service: AccountService
    ) -> None:
        balances.seed(1, "XRP", "1")
        with pytest.raises(InvalidRequestError, match="too small"):
            await service.convert(database.session(), 1, "XRP", "USDT", "0.0001")

    async def test_excess_precision_rejected(
        self, database: FakeDatabase, service: AccountService
    ) -> None:
        with pytest.raises(InvalidRequestError, match="decimal places"):
            await service.convert(database.session(), 1, "USDT", "BTC", "1.001")

    async def test_proceeds_beyond_column_range_rejected(
        self, database: FakeDatabase, balances: FakeBalanceRepository, service: AccountService
    ) -> None:
        balances.seed(1, "BTC", "99999999999999999999")
        with pytest.raises(InvalidRequestError, match="more USDT"):
            await service.convert(database.session(), 1, "BTC", "USDT", "99999999999999999999")
        assert await service.list_conversions(database.session(), 1) == []

    async def test_insufficient_funds_records_nothing(
        self, database: FakeDatabase, balances: FakeBalanceRepository, service: AccountService
    ) -> None:
        db = database.session()
        with pytest.raises(InsufficientFundsError):
            await service.convert(db, 1, "USDT", "BTC", "500")
        assert db.rollbacks == 1
        assert balances.snapshots(1) == []
        assert await service.list_conversions(database.session(), 1) == []


class TestHistory:
    async def test_daily_value_after_conversion(
        self, database: FakeDatabase, service: AccountService
    ) -> None:
        await service.convert(database.session(), 1, "USDT", "BTC", "65")

        history = await service.balance_history(database.session(), 1)

        assert len(history) == 1
        assert history[0].value_usd == Decimal("100")

    async def test_conversions_newest_first(
        self, database: FakeDatabase, service: AccountService
    ) -> None:
        first = await service.convert(database.session(), 1, "USDT", "BTC", "10")
        second = await service.convert(database.session(), 1, "USDT", "XRP", "10")
        listed = await service.list_conversions(database.session(), 1)
        assert [c.id for c in listed] == [second.id, first.id]


class TestEarn:
    async def test_deposit_and_withdraw(
        self, database: FakeDatabase, balances: FakeBalanceRepository, service: AccountService
    ) -> None:
        main, earn = await service.earn_deposit(database.session(), 1, "USDT", "40")
        assert (main.balance, earn.balance) == (Decimal("60"), Decimal("40"))

        main, earn = await service.earn_withdraw(database.session(), 1, "USDT", "15")
        assert (main.balance, earn.balance) == (Decimal("75"), Decimal("25"))

        positions = await service.earn_balances(database.session(), 1)
        assert [(p.coin, p.balance) for p in positions] == [("USDT", Decimal("25"))]

    async def test_withdraw_more_than_earned(
        self, database: FakeDatabase, balances: FakeBalanceRepository, service: AccountService
    ) -> None:
        await service.earn_deposit(database.session(), 1, "USDT", "10")
        with pytest.raises(InsufficientFundsError):
            await service.earn_withdraw(database.session(), 1, "USDT", "11")
        assert await _amount(balances, "USDT") == Decimal("90")
