"""DepositAddressRepository: raw SQL over ``deposit_addresses`` (one row per coin)."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ex_common.errors import InternalError
from src.ex_funding.domain.models import DepositAddress

_COLUMNS = "coin, address, qr_url, updated_at"

_LIST_SQL = text(f"SELECT {_COLUMNS} FROM deposit_addresses ORDER BY coin")

_GET_SQL = text(f"SELECT {_COLUMNS} FROM deposit_addresses WHERE coin = :coin")

_UPSERT_SQL = text(f"""
    INSERT INTO deposit_addresses (coin, address, qr_url)
    VALUES (:coin, :address, :qr_url)
    ON CONFLICT (coin) DO UPDATE
    SET address = EXCLUDED.address,
        qr_url = COALESCE(EXCLUDED.qr_url, deposit_addresses.qr_url)
    RETURNING {_COLUMNS}
""")


def _row_to_address(row: object) -> DepositAddress:
    return DepositAddress(
        coin=row.coin,  # type: ignore[attr-defined]
        address=row.address,  # type: ignore[attr-defined]
        qr_url=row.qr_url,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class DepositAddressRepository:
    async def list_all(self, db: AsyncSession) -> list[DepositAddress]:
        result = await db.execute(_LIST_SQL)
        return [_row_to_address(row) for row in result.fetchall()]

    async def get(self, db: AsyncSession, coin: str) -> DepositAddress | None:
        row = (await db.execute(_GET_SQL, {"coin": coin})).fetchone()
        return _row_to_address(row) if row is not None else None

    async def upsert(
        self, db: AsyncSession, coin: str, address: str, qr_url: str | None
    ) -> DepositAddress:
        params = {"coin": coin, "address": address, "qr_url": qr_url}
        row = (await db.execute(_UPSERT_SQL, params)).fetchone()
        if row is None:
            raise InternalError(f"Upsert of deposit address for {coin} returned no row")
        return _row_to_address(row)
