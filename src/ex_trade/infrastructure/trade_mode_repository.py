"""Trade-mode overrides: per-account rows and the global platform setting.

Read inside the resolution transaction; never cached in process memory.
"""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ex_common.enums import GlobalTradeMode, UserTradeMode

logger = logging.getLogger(__name__)

GLOBAL_MODE_KEY = "TRADE_MODE"

_GET_USER_MODE_SQL = text("SELECT mode FROM user_trade_modes WHERE user_id = :user_id")

_UPSERT_USER_MODE_SQL = text("""
    INSERT INTO user_trade_modes (user_id, mode)
    VALUES (:user_id, :mode)
    ON CONFLICT (user_id) DO UPDATE SET mode = EXCLUDED.mode
""")

_DELETE_USER_MODE_SQL = text(
    "DELETE FROM user_trade_modes WHERE user_id = :user_id RETURNING user_id"
)

_LIST_USER_MODES_SQL = text("SELECT user_id, mode FROM user_trade_modes ORDER BY user_id")

_GET_SETTING_SQL = text("SELECT value FROM platform_settings WHERE key = :key")

_UPSERT_SETTING_SQL = text("""
    INSERT INTO platform_settings (key, value)
    VALUES (:key, :value)
    ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value
""")


class TradeModeRepository:
    async def get_user_mode(
        self, db: AsyncSession, user_id: int
    ) -> UserTradeMode | None:
        value = (await db.execute(_GET_USER_MODE_SQL, {"user_id": user_id})).scalar_one_or_none()
        return UserTradeMode(value) if value else None

    async def set_user_mode(
        self, db: AsyncSession, user_id: int, mode: UserTradeMode
    ) -> None:
        await db.execute(_UPSERT_USER_MODE_SQL, {"user_id": user_id, "mode": mode.value})

    async def clear_user_mode(self, db: AsyncSession, user_id: int) -> bool:
        deleted = (await db.execute(_DELETE_USER_MODE_SQL, {"user_id": user_id})).fetchone()
        return deleted is not None

    async def list_user_modes(
        self, db: AsyncSession
    ) -> list[tuple[int, UserTradeMode]]:
        rows = (await db.execute(_LIST_USER_MODES_SQL)).fetchall()
        return [(r.user_id, UserTradeMode(r.mode)) for r in rows]  # type: ignore[attr-defined]

    async def get_global_mode(self, db: AsyncSession) -> GlobalTradeMode:
        value = (await db.execute(_GET_SETTING_SQL, {"key": GLOBAL_MODE_KEY})).scalar_one_or_none()
        if value is None:
            return GlobalTradeMode.AUTO
        try:
            return GlobalTradeMode(value)
        except ValueError:
            logger.warning("Unknown global trade mode %r in platform_settings, using AUTO", value)
            return GlobalTradeMode.AUTO

    async def set_global_mode(self, db: AsyncSession, mode: GlobalTradeMode) -> None:
        await db.execute(_UPSERT_SETTING_SQL, {"key": GLOBAL_MODE_KEY, "value": mode.value})
