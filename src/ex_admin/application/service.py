"""Admin application service: overrides, request decisions, KYC, deletion, audit.

Every mutation commits on success and rolls back on failure. Request
decisions go through FundingService.transition so admin forcing and any
other caller share one terminal-state guard.
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

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
from src.ex_funding.application.service import FundingService, get_funding_service
from src.ex_funding.domain.models import DepositAddress, FundingRequest
from src.ex_profile.infrastructure.storage import UploadedFile
from src.ex_trade.domain.models import Trade
from src.ex_trade.domain.repository import TradeModeRepositoryProtocol, TradeRepositoryProtocol
from src.ex_trade.infrastructure.persistence import TradeRepository
from src.ex_trade.infrastructure.trade_mode_repository import TradeModeRepository

logger = logging.getLogger(__name__)

_USER_EXISTS_SQL = text("SELECT id FROM users WHERE id = :user_id")
_LOCK_USER_SQL = text("SELECT id FROM users WHERE id = :user_id FOR UPDATE")

_SET_KYC_SQL = text("""
    UPDATE users SET kyc_status = :status
    WHERE id = :user_id
    RETURNING id
""")

# Dependents first, the account row last
_DELETE_ACCOUNT_SQL = [
    text(f"DELETE FROM {table} WHERE user_id = :user_id")
    for table in (
        "balance_history",
        "conversions",
        "earn_wallet",
        "user_balances",
        "trades",
        "deposits",
        "withdrawals",
        "user_trade_modes",
    )
] + [text("DELETE FROM users WHERE id = :user_id")]

_LIST_USERS_SQL = text("""
    SELECT u.id, u.username, u.email, u.verified, u.kyc_status, u.created_at,
           m.mode AS trade_mode
    FROM users u
    LEFT JOIN user_trade_modes m ON m.user_id = u.id
    ORDER BY u.id DESC
    LIMIT :limit
""")

_NEGATIVE_BALANCES_SQL = text("""
    SELECT 'main' AS ledger, user_id, coin, balance, frozen
    FROM user_balances
    WHERE balance < 0 OR frozen < 0
    UNION ALL
    SELECT 'earn' AS ledger, user_id, coin, balance, 0 AS frozen
    FROM earn_wallet
    WHERE balance < 0
""")

# frozen must equal the sum of the owner's pending withdrawals in that coin
_HOLD_MISMATCH_SQL = text("""
    SELECT COALESCE(b.user_id, w.user_id) AS user_id,
           COALESCE(b.coin, w.coin) AS coin,
           COALESCE(b.frozen, 0) AS frozen,
           COALESCE(w.pending, 0) AS pending
    FROM user_balances b
    FULL OUTER JOIN (
        SELECT user_id, coin, SUM(amount) AS pending
        FROM withdrawals
        WHERE status = 'pending'
        GROUP BY user_id, coin
    ) w ON w.user_id = b.user_id AND w.coin = b.coin
    WHERE COALESCE(b.frozen, 0) <> COALESCE(w.pending, 0)
""")

_REVIEWABLE_KYC = (KycStatus.PENDING, KycStatus.APPROVED, KycStatus.REJECTED)


@dataclass(frozen=True)
class LedgerIssue:
    kind: str            # "negative_balance" | "hold_mismatch"
    user_id: int
    coin: str
    detail: str


def _parse_user_mode(mode: str | None) -> UserTradeMode | None:
    if mode is None or not mode.strip() or mode.strip().upper() in ("NONE", "AUTO", "CLEAR"):
        return None
    try:
        return UserTradeMode(mode.strip().upper())
    except ValueError:
        raise InvalidTradeModeError(mode) from None


def _parse_global_mode(mode: str) -> GlobalTradeMode:
    try:
        return GlobalTradeMode((mode or "").strip().upper())
    except ValueError:
        raise InvalidTradeModeError(mode) from None


class AdminService:
    def __init__(
        self,
        modes: TradeModeRepositoryProtocol | None = None,
        trades: TradeRepositoryProtocol | None = None,
        funding: FundingService | None = None,
    ) -> None:
        self._modes: TradeModeRepositoryProtocol = modes or TradeModeRepository()
        self._trades: TradeRepositoryProtocol = trades or TradeRepository()
        self._funding = funding or get_funding_service()

    async def _require_user(self, db: AsyncSession, user_id: int) -> None:
        if (await db.execute(_USER_EXISTS_SQL, {"user_id": user_id})).fetchone() is None:
            raise UserNotFoundError(user_id)

    # ------------------------------------------------------------------
    # Trade modes
    # ------------------------------------------------------------------

    async def set_user_trade_mode(
        self, db: AsyncSession, user_id: int, mode: str | None
    ) -> UserTradeMode | None:
        """Set WIN/LOSE for one account; None (or "AUTO") clears the override."""
        parsed = _parse_user_mode(mode)
        try:
            await self._require_user(db, user_id)
            if parsed is None:
                await self._modes.clear_user_mode(db, user_id)
            else:
                await self._modes.set_user_mode(db, user_id, parsed)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Trade mode for user %s set to %s", user_id, parsed.value if parsed else "none")
        return parsed

    async def get_user_trade_mode(self, db: AsyncSession, user_id: int) -> UserTradeMode | None:
        await self._require_user(db, user_id)
        return await self._modes.get_user_mode(db, user_id)

    async def list_user_trade_modes(self, db: AsyncSession) -> list[tuple[int, UserTradeMode]]:
        return await self._modes.list_user_modes(db)

    async def set_global_trade_mode(self, db: AsyncSession, mode: str) -> GlobalTradeMode:
        parsed = _parse_global_mode(mode)
        try:
            await self._modes.set_global_mode(db, parsed)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Global trade mode set to %s", parsed.value)
        return parsed

    async def get_global_trade_mode(self, db: AsyncSession) -> GlobalTradeMode:
        return await self._modes.get_global_mode(db)

    # ------------------------------------------------------------------
    # Requests and KYC
    # ------------------------------------------------------------------

    async def force_request_status(
        self, db: AsyncSession, kind: RequestKind, request_id: int, status: str
    ) -> FundingRequest:
        try:
            target = RequestStatus((status or "").strip().lower())
        except ValueError:
            raise InvalidRequestError(f"Unknown request status: {status!r}") from None
        return await self._funding.transition(db, kind, request_id, target, ActorRole.ADMIN)

    async def list_deposit_addresses(self, db: AsyncSession) -> list[DepositAddress]:
        return await self._funding.list_deposit_addresses(db)

    async def set_deposit_address(
        self, db: AsyncSession, coin: str, address: str, qr: UploadedFile | None = None
    ) -> DepositAddress:
        return await self._funding.set_deposit_address(db, coin, address, qr)

    async def set_kyc_status(self, db: AsyncSession, user_id: int, status: str) -> KycStatus:
        try:
            parsed = KycStatus((status or "").strip().lower())
        except ValueError:
            raise InvalidRequestError(f"Unknown KYC status: {status!r}") from None
        if parsed not in _REVIEWABLE_KYC:
            raise InvalidRequestError(f"KYC status cannot be set to {parsed.value}")
        try:
            row = (
                await db.execute(_SET_KYC_SQL, {"user_id": user_id, "status": parsed.value})
            ).fetchone()
            if row is None:
                raise UserNotFoundError(user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("KYC status for user %s set to %s", user_id, parsed.value)
        return parsed

    # ------------------------------------------------------------------
    # Account deletion
    # ------------------------------------------------------------------

    async def delete_account(self, db: AsyncSession, user_id: int) -> None:
        """Delete an account and every row that references it, atomically."""
        try:
            if (await db.execute(_LOCK_USER_SQL, {"user_id": user_id})).fetchone() is None:
                raise UserNotFoundError(user_id)
            for stmt in _DELETE_ACCOUNT_SQL:
                await db.execute(stmt, {"user_id": user_id})
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.warning("Account %s deleted with all dependent rows", user_id)

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    async def list_users(self, db: AsyncSession, limit: int = 100) -> list[dict[str, Any]]:
        rows = (await db.execute(_LIST_USERS_SQL, {"limit": limit})).fetchall()
        return [
            {
                "user_id": r.id,
                "username": r.username,
                "email": r.email,
                "verified": r.verified,
                "kyc_status": r.kyc_status,
                "trade_mode": r.trade_mode,
                "created_at": r.created_at.isoformat() if r.created_at else None,
            }
            for r in rows
        ]

    async def list_trades(
        self, db: AsyncSession, limit: int = 100, result: str | None = None
    ) -> list[Trade]:
        parsed: TradeResult | None = None
        if result:
            try:
                parsed = TradeResult(result.strip().upper())
            except ValueError:
                raise InvalidRequestError(f"Unknown trade result: {result!r}") from None
        return await self._trades.list_all(db, limit, parsed)

    async def list_requests(
        self,
        db: AsyncSession,
        kind: RequestKind,
        limit: int = 100,
        status: str | None = None,
    ) -> list[FundingRequest]:
        parsed: RequestStatus | None = None
        if status:
            try:
                parsed = RequestStatus(status.strip().lower())
            except ValueError:
                raise InvalidRequestError(f"Unknown request status: {status!r}") from None
        return await self._funding.list_all(db, kind, limit, parsed)

    # ------------------------------------------------------------------
    # Ledger audit
    # ------------------------------------------------------------------

    async def audit_ledger(self, db: AsyncSession) -> list[LedgerIssue]:
        """Report negative balances and frozen amounts not backed by pending withdrawals."""
        issues: list[LedgerIssue] = []
        for r in (await db.execute(_NEGATIVE_BALANCES_SQL)).fetchall():
            issues.append(
                LedgerIssue(
                    "negative_balance",
                    r.user_id,
                    r.coin,
                    f"{r.ledger} balance={r.balance} frozen={r.frozen}",
                )
            )
        for r in (await db.execute(_HOLD_MISMATCH_SQL)).fetchall():
            issues.append(
                LedgerIssue(
                    "hold_mismatch",
                    r.user_id,
                    r.coin,
                    f"frozen={r.frozen} pending_withdrawals={r.pending}",
                )
            )

        for issue in issues:
            logger.error(
                "Ledger audit: %s user=%s coin=%s %s",
                issue.kind, issue.user_id, issue.coin, issue.detail,
            )
        if not issues:
            logger.info("Ledger audit clean")
        return issues


_admin_service: AdminService | None = None


def get_admin_service() -> AdminService:
    global _admin_service  # noqa: PLW0603
    if _admin_service is None:
        _admin_service = AdminService()
    return _admin_service
