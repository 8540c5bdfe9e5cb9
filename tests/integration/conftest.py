"""Integration-test fixtures (running PG + Redis, migrated schema).

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool remain valid across the entire
test session. When either service is unreachable the tests are skipped.

Prices come from a fixed in-process feed so flows never depend on the
network; everything else (SQL, row locks, Redis codes) is real.
"""

import pytest
import pytest_asyncio
from flow_helpers import account_service, admin_service, feed, funding_service, trade_service
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from src.ex_account.application.service import get_account_service
from src.ex_admin.application.service import get_admin_service
from src.ex_common.database import engine
from src.ex_common.redis_client import get_redis
from src.ex_funding.application.service import get_funding_service
from src.ex_market.infrastructure.price_feed import get_price_feed
from src.ex_trade.application.service import get_trade_service
from src.main import app


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client; keeps the engine pool alive."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        await (await get_redis()).ping()
    except Exception as exc:  # noqa: BLE001
        pytest.skip(f"PostgreSQL/Redis not reachable: {exc}")

    app.dependency_overrides[get_price_feed] = lambda: feed
    app.dependency_overrides[get_trade_service] = lambda: trade_service
    app.dependency_overrides[get_funding_service] = lambda: funding_service
    app.dependency_overrides[get_account_service] = lambda: account_service
    app.dependency_overrides[get_admin_service] = lambda: admin_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
