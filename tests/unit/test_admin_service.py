"""Unit tests for AdminService using a mock session."""

from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from ledger_fakes import FakeTradeModeRepository

from src.ex_admin.application.service import AdminService
from src.ex_common.enums import (
    ActorRole,
    GlobalTradeMode,
    KycStatus,
    RequestKind,
    RequestStatus,
    TradeResult,
    UserTradeMode,
)
from src.ex_common.errors import InvalidRequestError, InvalidTradeModeError, UserNotFoundError


def _result(row: object = None, rows: list | None = None) -> MagicMock:
    result = MagicMock()
    result.fetchone.return_value = row
    result.fetchall.return_value = rows or []
    return result


def _db(*results: MagicMock) -> AsyncMock:
    db = AsyncMock()
    db.execute.side_effect = list(results)
    return db


@pytest.fixture
def modes() -> FakeTradeModeRepository:
    return FakeTradeModeRepository()


@pytest.fixture
def funding() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def trades() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def service(
    modes: FakeTradeModeRepository, funding: AsyncMock, trades: AsyncMock
) -> AdminService:
    return AdminService(modes=modes, trades=trades, funding=funding)


class TestUserTradeMode:
    async def test_set_win(self, service: AdminService, modes: FakeTradeModeRepository) -> None:
        db = _db(_result(MagicMock(id=1)))
        assert await service.set_user_trade_mode(db, 1, "win") is UserTradeMode.WIN
        assert modes.user_modes == {1: UserTradeMode.WIN}
        db.commit.assert_awaited_once()

    @pytest.mark.parametrize("clear", [None, "", "auto", "NONE"])
    async def test_clear(
        self, service: AdminService, modes: FakeTradeModeRepository, clear: str | None
    ) -> None:
        modes.user_modes[1] = UserTradeMode.LOSE
        db = _db(_result(MagicMock(id=1)))
        assert await service.set_user_trade_mode(db, 1, clear) is None
        assert modes.user_modes == {}

    async def test_unknown_user(self, service: AdminService, modes: FakeTradeModeRepository) -> None:
        db = _db(_result(None))
        with pytest.raises(UserNotFoundError):
            await service.set_user_trade_mode(db, 99, "WIN")
        db.rollback.assert_awaited_once()
        assert modes.user_modes == {}

    async def test_invalid_mode(self, service: AdminService) -> None:
        with pytest.raises(InvalidTradeModeError):
            await service.set_user_trade_mode(AsyncMock(), 1, "ALL_WIN")

    async def test_get(self, service: AdminService, modes: FakeTradeModeRepository) -> None:
        modes.user_modes[3] = UserTradeMode.LOSE
        assert await service.get_user_trade_mode(_db(_result(MagicMock(id=3))), 3) is UserTradeMode.LOSE

    async def test_list(self, service: AdminService, modes: FakeTradeModeRepository) -> None:
        modes.user_modes.update({2: UserTradeMode.WIN, 1: UserTradeMode.LOSE})
        assert await service.list_user_trade_modes(AsyncMock()) == [
            (1, UserTradeMode.LOSE),
            (2, UserTradeMode.WIN),
        ]


class TestGlobalTradeMode:
    async def test_set_and_get(self, service: AdminService) -> None:
        db = AsyncMock()
        assert await service.set_global_trade_mode(db, "all_win") is GlobalTradeMode.ALL_WIN
        assert await service.get_global_trade_mode(db) is GlobalTradeMode.ALL_WIN
        db.commit.assert_awaited_once()

    async def test_rejects_user_only_mode(self, service: AdminService) -> None:
        with pytest.raises(InvalidTradeModeError):
            await service.set_global_trade_mode(AsyncMock(), "WIN")


class TestRequestDecisions:
    async def test_force_status_goes_through_transition(
        self, service: AdminService, funding: AsyncMock
    ) -> None:
        db = AsyncMock()
        await service.force_request_status(db, RequestKind.WITHDRAWAL, 5, " Approved ")
        funding.transition.assert_awaited_once_with(
            db, RequestKind.WITHDRAWAL, 5, RequestStatus.APPROVED, ActorRole.ADMIN
        )

    async def test_unknown_status(self, service: AdminService, funding: AsyncMock) -> None:
        with pytest.raises(InvalidRequestError):
            await service.force_request_status(AsyncMock(), RequestKind.DEPOSIT, 5, "done")
        funding.transition.assert_not_awaited()

    async def test_list_requests_filters_status(
        self, service: AdminService, funding: AsyncMock
    ) -> None:
        db = AsyncMock()
        await service.list_requests(db, RequestKind.DEPOSIT, 20, "PENDING")
        funding.list_all.assert_awaited_once_with(
            db, RequestKind.DEPOSIT, 20, RequestStatus.PENDING
        )


class TestDepositAddresses:
    async def test_set_goes_through_funding(
        self, service: AdminService, funding: AsyncMock
    ) -> None:
        db = AsyncMock()
        await service.set_deposit_address(db, "BTC", "bc1qplatform", None)
        funding.set_deposit_address.assert_awaited_once_with(db, "BTC", "bc1qplatform", None)

    async def test_list_goes_through_funding(
        self, service: AdminService, funding: AsyncMock
    ) -> None:
        db = AsyncMock()
        funding.list_deposit_addresses.return_value = []
        assert await service.list_deposit_addresses(db) == []
        funding.list_deposit_addresses.assert_awaited_once_with(db)


class TestKyc:
    async def test_approve(self, service: AdminService) -> None:
        db = _db(_result(MagicMock(id=1)))
        assert await service.set_kyc_status(db, 1, "approved") is KycStatus.APPROVED
        params = db.execute.call_args.args[1]
        assert params == {"user_id": 1, "status": "approved"}
        db.commit.assert_awaited_once()

    async def test_cannot_reset_to_unverified(self, service: AdminService) -> None:
        with pytest.raises(InvalidRequestError):
            await service.set_kyc_status(AsyncMock(), 1, "unverified")

    async def test_missing_user(self, service: AdminService) -> None:
        db = _db(_result(None))
        with pytest.raises(UserNotFoundError):
            await service.set_kyc_status(db, 7, "rejected")
        db.rollback.assert_awaited_once()


class TestDeleteAccount:
    async def test_deletes_dependents_then_user(self, service: AdminService) -> None:
        db = AsyncMock()
        db.execute.return_value = _result(MagicMock(id=4))

        await service.delete_account(db, 4)

        statements = [str(c.args[0]) for c in db.execute.call_args_list]
        assert "FOR UPDATE" in statements[0]
        assert "DELETE FROM users" in statements[-1]
        assert any("DELETE FROM user_balances" in s for s in statements)
        assert any("DELETE FROM trades" in s for s in statements)
        db.commit.assert_awaited_once()

    async def test_unknown_user(self, service: AdminService) -> None:
        db = _db(_result(None))
        with pytest.raises(UserNotFoundError):
            await service.delete_account(db, 4)
        assert db.execute.await_count == 1
        db.rollback.assert_awaited_once()

    async def test_failure_rolls_back(self, service: AdminService) -> None:
        db = AsyncMock()
        db.execute.side_effect = [_result(MagicMock(id=4)), RuntimeError("fk violation")]
        with pytest.raises(RuntimeError):
            await service.delete_account(db, 4)
        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()


class TestListings:
    async def test_list_users(self, service: AdminService) -> None:
        row = MagicMock(
            id=1,
            username="alice",
            email="alice@example.com",
            verified=True,
            kyc_status="pending",
            trade_mode="WIN",
            created_at=datetime(2024, 1, 1, tzinfo=UTC),
        )
        users = await service.list_users(_db(_result(rows=[row])), 10)
        assert users == [
            {
                "user_id": 1,
                "username": "alice",
                "email": "alice@example.com",
                "verified": True,
                "kyc_status": "pending",
                "trade_mode": "WIN",
                "created_at": "2024-01-01T00:00:00+00:00",
            }
        ]

    async def test_list_trades_by_result(self, service: AdminService, trades: AsyncMock) -> None:
        db = AsyncMock()
        await service.list_trades(db, 50, "win")
        trades.list_all.assert_awaited_once_with(db, 50, TradeResult.WIN)

    async def test_list_trades_bad_result(self, service: AdminService) -> None:
        with pytest.raises(InvalidRequestError):
            await service.list_trades(AsyncMock(), 50, "draw")


class TestAudit:
    async def test_clean(self, service: AdminService) -> None:
        assert await service.audit_ledger(_db(_result(), _result())) == []

    async def test_reports_issues(self, service: AdminService) -> None:
        negative = MagicMock(
            ledger="main", user_id=1, coin="USDT", balance=Decimal("-5"), frozen=Decimal("0")
        )
        mismatch = MagicMock(user_id=2, coin="BTC", frozen=Decimal("1"), pending=Decimal("0"))

        issues = await service.audit_ledger(_db(_result(rows=[negative]), _result(rows=[mismatch])))

        assert [(i.kind, i.user_id, i.coin) for i in issues] == [
            ("negative_balance", 1, "USDT"),
            ("hold_mismatch", 2, "BTC"),
        ]
        assert issues[1].detail == "frozen=1 pending_withdrawals=0"
