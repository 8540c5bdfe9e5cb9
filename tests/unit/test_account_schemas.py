"""Tests for the account, funding and trade API schemas."""

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from src.ex_account.application.schemas import (
    BalanceResponse,
    ConversionResponse,
    ConvertRequest,
    DailyValueResponse,
    EarnTransferRequest,
)
from src.ex_account.domain.models import Balance, Conversion, DailyValue
from src.ex_common.enums import RequestKind, TradeDirection, TradeResult
from src.ex_funding.application.schemas import FundingRequestResponse, WithdrawalCreateRequest
from src.ex_funding.domain.models import FundingRequest
from src.ex_trade.application.schemas import OpenTradeRequest, TradeResponse
from src.ex_trade.domain.models import Trade


class TestRequests:
    def test_convert_amount_positive(self) -> None:
        with pytest.raises(ValidationError):
            ConvertRequest(from_coin="USDT", to_coin="BTC", amount=Decimal("0"))

    def test_earn_amount_positive(self) -> None:
        with pytest.raises(ValidationError):
            EarnTransferRequest(coin="USDT", amount=Decimal("-1"))

    def test_withdrawal_needs_address(self) -> None:
        with pytest.raises(ValidationError):
            WithdrawalCreateRequest(coin="BTC", amount=Decimal("1"), address="")

    def test_trade_defaults(self) -> None:
        req = OpenTradeRequest(direction="BUY", amount=Decimal("10"))
        assert (req.symbol, req.duration, req.client_price) == ("BTC", 30, None)


class TestBalanceResponse:
    def test_coin_precision(self) -> None:
        resp = BalanceResponse.from_balance(
            Balance(1, "XRP", Decimal("12.345678"), frozen=Decimal("1"))
        )
        assert (resp.balance, resp.frozen, resp.total) == ("12.3456", "1.0000", "13.3456")

    def test_database_scale_trimmed(self) -> None:
        resp = BalanceResponse.from_balance(Balance(1, "USDT", Decimal("100.00000000")))
        assert resp.balance == "100.00"


def test_daily_value() -> None:
    resp = DailyValueResponse.from_value(DailyValue(date(2026, 3, 1), Decimal("785.129")))
    assert (resp.day, resp.value_usd) == ("2026-03-01", "785.12")


def test_conversion() -> None:
    resp = ConversionResponse.from_conversion(
        Conversion(
            id=1,
            user_id=1,
            from_coin="BTC",
            to_coin="USDT",
            amount=Decimal("0.00500000"),
            received=Decimal("325.00000000"),
            rate=Decimal("65000"),
        )
    )
    assert (resp.amount, resp.received, resp.created_at) == ("0.00500000", "325.00", None)


class TestTradeResponse:
    def _trade(self, symbol: str, **kwargs: object) -> Trade:
        return Trade(
            id=1,
            user_id=1,
            symbol=symbol,
            direction=TradeDirection.BUY,
            stake=Decimal("10.00000000"),
            duration=30,
            entry_price=Decimal("0.61234000"),
            opened_at=datetime(2026, 3, 1, tzinfo=UTC),
            **kwargs,  # type: ignore[arg-type]
        )

    def test_prices_at_symbol_precision(self) -> None:
        resp = TradeResponse.from_trade(
            self._trade("XRP", result=TradeResult.WIN, profit=Decimal("3.00000000"),
                        settlement_price=Decimal("0.61250000"))
        )
        assert (resp.entry_price, resp.settlement_price) == ("0.6123", "0.6125")
        assert (resp.amount, resp.profit) == ("10.00", "3.00")
        assert resp.opened_at == "2026-03-01T00:00:00+00:00"

    def test_pending_has_no_settlement(self) -> None:
        resp = TradeResponse.from_trade(self._trade("BTC"))
        assert resp.settlement_price is None
        assert resp.entry_price == "0.61"


def test_funding_request_amount_at_coin_precision() -> None:
    resp = FundingRequestResponse.from_request(
        FundingRequest(
            id=1, kind=RequestKind.DEPOSIT, user_id=1, coin="BTC",
            amount=Decimal("20.00000000"), address=None,
        )
    )
    assert (resp.kind, resp.status, resp.amount) == ("deposit", "pending", "20.00000000")
