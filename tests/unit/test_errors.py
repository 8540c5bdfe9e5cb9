"""Tests for ex_common.errors and ex_common.response."""

from decimal import Decimal
from unittest.mock import MagicMock

from src.ex_common.errors import (
    AdminTokenError,
    AlreadyFinalizedError,
    AppError,
    InsufficientFundsError,
    KycAlreadySubmittedError,
    PriceUnavailableError,
    RateLimitError,
    RequestNotFoundError,
    TradeNotFoundError,
    UnsupportedSymbolError,
)
from src.ex_common.response import error_response, respond, success_response


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9002, message="Internal error")
        assert err.code == 9002
        assert err.message == "Internal error"
        assert err.http_status == 500

    def test_custom_http_status(self) -> None:
        err = AppError(code=1001, message="Username taken", http_status=409)
        assert err.http_status == 409

    def test_is_exception(self) -> None:
        assert isinstance(AppError(code=1001, message="test"), Exception)


class TestSpecificErrors:
    def test_insufficient_funds(self) -> None:
        err = InsufficientFundsError("USDT", Decimal("150"), Decimal("100"))
        assert err.code == 2001
        assert err.http_status == 422
        assert "150" in err.message
        assert "100" in err.message
        assert "USDT" in err.message

    def test_unsupported_symbol(self) -> None:
        err = UnsupportedSymbolError("DOGE")
        assert err.code == 3001
        assert err.http_status == 422

    def test_price_unavailable_is_503(self) -> None:
        err = PriceUnavailableError("BTC")
        assert err.code == 3002
        assert err.http_status == 503

    def test_trade_not_found(self) -> None:
        err = TradeNotFoundError(42)
        assert err.code == 4001
        assert err.http_status == 404

    def test_request_errors(self) -> None:
        assert RequestNotFoundError("deposit", 7).message == "Deposit request not found: 7"
        finalized = AlreadyFinalizedError("withdrawal", 3, "approved")
        assert finalized.code == 5002
        assert finalized.http_status == 409
        assert "already approved" in finalized.message

    def test_kyc_and_admin(self) -> None:
        assert KycAlreadySubmittedError("pending").http_status == 409
        assert AdminTokenError().http_status == 403

    def test_rate_limit(self) -> None:
        err = RateLimitError()
        assert err.code == 9001
        assert err.http_status == 429


class TestApiResponse:
    def test_success(self) -> None:
        resp = success_response({"id": 1})
        assert resp.code == 0
        assert resp.message == "success"
        assert resp.data == {"id": 1}

    def test_error(self) -> None:
        resp = error_response(2001, "Insufficient USDT balance")
        assert resp.code == 2001
        assert resp.data is None

    def test_serialization(self) -> None:
        d = success_response({"price": "65000.00"}).model_dump()
        assert set(d) == {"code", "message", "data", "timestamp", "request_id"}

    def test_respond_reuses_request_id(self) -> None:
        request = MagicMock()
        request.state.request_id = "req_abc123"
        resp = respond(request, {"ok": True}, "done")
        assert resp.request_id == "req_abc123"
        assert resp.message == "done"
