"""FundingRepository: raw SQL over the ``deposits`` and ``withdrawals`` tables.

Both tables share one shape (withdrawals have no proof column), so every
statement is built once per kind. Leaving ``pending`` is a conditional UPDATE
on ``status = 'pending'``.
"""

from decimal import Decimal

from sqlalchemy import TextClause, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ex_common.enums import RequestKind, RequestStatus
from src.ex_common.errors import InternalError
from src.ex_funding.domain.models import FundingRequest

_TABLES = {RequestKind.DEPOSIT: "deposits", RequestKind.WITHDRAWAL: "withdrawals"}


def _columns(kind: RequestKind) -> str:
    proof = "proof_url" if kind is RequestKind.DEPOSIT else "NULL AS proof_url"
    return f"id, user_id, coin, amount, address, {proof}, status, created_at, reviewed_at"


def _build(kind: RequestKind) -> dict[str, TextClause]:
    table = _TABLES[kind]
    cols = _columns(kind)
    if kind is RequestKind.DEPOSIT:
        insert = f"""
            INSERT INTO deposits (user_id, coin, amount, address, proof_url, status)
            VALUES (:user_id, :coin, :amount, :address, :proof_url, 'pending')
            RETURNING {cols}
        """
    else:
        insert = f"""
            INSERT INTO withdrawals (user_id, coin, amount, address, status)
            VALUES (:user_id, :coin, :amount, :address, 'pending')
            RETURNING {cols}
        """
    return {
        "insert": text(insert),
        "get": text(f"SELECT {cols} FROM {table} WHERE id = :request_id"),
        "lock": text(f"SELECT {cols} FROM {table} WHERE id = :request_id FOR UPDATE"),
        "set_status": text(f"""
            UPDATE {table}
            SET status = :status, reviewed_at = NOW()
            WHERE id = :request_id AND status = 'pending'
            RETURNING {cols}
        """),
        "list_by_user": text(f"""
            SELECT {cols} FROM {table}
            WHERE user_id = :user_id
            ORDER BY id DESC
            LIMIT :limit
        """),
        "list_all": text(f"SELECT {cols} FROM {table} ORDER BY id DESC LIMIT :limit"),
        "list_by_status": text(f"""
            SELECT {cols} FROM {table}
            WHERE status = :status
            ORDER BY id DESC
            LIMIT :limit
        """),
    }


_SQL: dict[RequestKind, dict[str, TextClause]] = {kind: _build(kind) for kind in RequestKind}


def _row_to_request(kind: RequestKind, row: object) -> FundingRequest:
    return FundingRequest(
        id=row.id,  # type: ignore[attr-defined]
        kind=kind,
        user_id=row.user_id,  # type: ignore[attr-defined]
        coin=row.coin,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        address=row.address,  # type: ignore[attr-defined]
        status=RequestStatus(row.status),  # type: ignore[attr-defined]
        proof_url=row.proof_url,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        reviewed_at=row.reviewed_at,  # type: ignore[attr-defined]
    )


class FundingRepository:
    async def insert(
        self,
        db: AsyncSession,
        kind: RequestKind,
        user_id: int,
        coin: str,
        amount: Decimal,
        address: str | None,
        proof_url: str | None = None,
    ) -> FundingRequest:
        params = {"user_id": user_id, "coin": coin, "amount": amount, "address": address}
        if kind is RequestKind.DEPOSIT:
            params["proof_url"] = proof_url
        row = (await db.execute(_SQL[kind]["insert"], params)).fetchone()
        if row is None:
            raise InternalError(f"{kind.value} insert returned no rows")
        return _row_to_request(kind, row)

    async def get(
        self, db: AsyncSession, kind: RequestKind, request_id: int
    ) -> FundingRequest | None:
        row = (await db.execute(_SQL[kind]["get"], {"request_id": request_id})).fetchone()
        return _row_to_request(kind, row) if row else None

    async def lock(
        self, db: AsyncSession, kind: RequestKind, request_id: int
    ) -> FundingRequest | None:
        row = (await db.execute(_SQL[kind]["lock"], {"request_id": request_id})).fetchone()
        return _row_to_request(kind, row) if row else None

    async def set_status(
        self,
        db: AsyncSession,
        kind: RequestKind,
        request_id: int,
        status: RequestStatus,
    ) -> FundingRequest | None:
        row = (
            await db.execute(
                _SQL[kind]["set_status"], {"request_id": request_id, "status": status.value}
            )
        ).fetchone()
        return _row_to_request(kind, row) if row else None

    async def list_by_user(
        self, db: AsyncSession, kind: RequestKind, user_id: int, limit: int
    ) -> list[FundingRequest]:
        result = await db.execute(
            _SQL[kind]["list_by_user"], {"user_id": user_id, "limit": limit}
        )
        return [_row_to_request(kind, r) for r in result.fetchall()]

    async def list_all(
        self,
        db: AsyncSession,
        kind: RequestKind,
        limit: int,
        status: RequestStatus | None = None,
    ) -> list[FundingRequest]:
        if status is None:
            result = await db.execute(_SQL[kind]["list_all"], {"limit": limit})
        else:
            result = await db.execute(
                _SQL[kind]["list_by_status"], {"limit": limit, "status": status.value}
            )
        return [_row_to_request(kind, r) for r in result.fetchall()]
