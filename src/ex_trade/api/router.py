"""ex_trade REST API: open a timed trade, list and read the caller's trades."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.ex_common.database import get_db_session
from src.ex_common.response import ApiResponse, respond
from src.ex_gateway.auth.dependencies import get_current_user
from src.ex_gateway.user.db_models import UserModel
from src.ex_trade.application.schemas import OpenTradeRequest, TradeListResponse, TradeResponse
from src.ex_trade.application.service import TradeService, get_trade_service

router = APIRouter(prefix="/trades", tags=["trades"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def open_trade(
    body: OpenTradeRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[TradeService, Depends(get_trade_service)],
    request: Request,
) -> ApiResponse:
    trade = await service.open_trade(
        db,
        current_user.id,
        body.symbol,
        body.direction,
        body.amount,
        body.duration,
        body.client_price,
    )
    return respond(request, TradeResponse.from_trade(trade).model_dump(), "Trade opened")


@router.get("")
async def list_trades(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[TradeService, Depends(get_trade_service)],
    request: Request,
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    trades = await service.list_history(db, current_user.id, limit)
    data = TradeListResponse(items=[TradeResponse.from_trade(t) for t in trades])
    return respond(request, data.model_dump())


@router.get("/{trade_id}")
async def get_trade(
    trade_id: int,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[TradeService, Depends(get_trade_service)],
    request: Request,
) -> ApiResponse:
    trade = await service.get_trade(db, current_user.id, trade_id)
    return respond(request, TradeResponse.from_trade(trade).model_dump())
