"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
(uvicorn[standard] picks uvloop automatically when it is installed.)
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text

from config.settings import settings
from src.ex_account.api.earn_router import router as earn_router
from src.ex_account.api.router import router as account_router
from src.ex_admin.api.router import router as admin_router
from src.ex_common.database import engine
from src.ex_common.errors import AppError
from src.ex_common.redis_client import close_redis, get_redis
from src.ex_common.response import error_response
from src.ex_funding.api.router import deposits_router, withdrawals_router
from src.ex_gateway.api.router import router as auth_router
from src.ex_gateway.middleware.rate_limit import RateLimitMiddleware
from src.ex_gateway.middleware.request_log import RequestLogMiddleware
from src.ex_market.api.router import router as prices_router
from src.ex_market.infrastructure.price_feed import close_price_feed
from src.ex_profile.api.router import kyc_router, profile_router
from src.ex_trade.api.router import router as trades_router
from src.ex_trade.application.service import get_trade_scheduler

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: check DB + Redis, resolve overdue trades, start the sweeper.

    Shutdown: drop trade jobs (resolve_at recovers them next start), close clients.
    """
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await get_redis()

    scheduler = get_trade_scheduler()
    recovered = await scheduler.sweep_overdue()
    if recovered:
        logger.info("Resolved %d overdue trades at startup", recovered)
    scheduler.start_sweeper(settings.TRADE_SWEEP_INTERVAL_SECONDS)
    yield
    scheduler.shutdown()
    await close_price_feed()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

# Last added runs first: request ids exist before the limiter answers
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


for _router in (
    auth_router,
    account_router,
    earn_router,
    deposits_router,
    withdrawals_router,
    trades_router,
    prices_router,
    profile_router,
    kyc_router,
    admin_router,
):
    app.include_router(_router, prefix="/api/v1")

app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
