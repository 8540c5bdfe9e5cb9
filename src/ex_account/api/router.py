"""ex_account REST API: balances, balance history and conversions (JWT required)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ex_account.application.schemas import (
    BalanceListResponse,
    BalanceResponse,
    ConversionResponse,
    ConvertRequest,
    DailyValueResponse,
)
from src.ex_account.application.service import AccountService, get_account_service
from src.ex_common.database import get_db_session
from src.ex_common.response import ApiResponse, respond
from src.ex_gateway.auth.dependencies import get_current_user
from src.ex_gateway.user.db_models import UserModel

router = APIRouter(prefix="/account", tags=["account"])


@router.get("/balances")
async def get_balances(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AccountService, Depends(get_account_service)],
    request: Request,
) -> ApiResponse:
    balances = await service.get_balances(db, current_user.id)
    data = BalanceListResponse(items=[BalanceResponse.from_balance(b) for b in balances])
    return respond(request, data.model_dump())


@router.get("/balances/{coin}")
async def get_balance(
    coin: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AccountService, Depends(get_account_service)],
    request: Request,
) -> ApiResponse:
    balance = await service.get_balance(db, current_user.id, coin)
    return respond(request, BalanceResponse.from_balance(balance).model_dump())


@router.get("/history")
async def balance_history(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AccountService, Depends(get_account_service)],
    request: Request,
    days: int = Query(30, ge=1, le=365),
) -> ApiResponse:
    values = await service.balance_history(db, current_user.id, days)
    return respond(request, [DailyValueResponse.from_value(v).model_dump() for v in values])


@router.post("/convert")
async def convert(
    body: ConvertRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AccountService, Depends(get_account_service)],
    request: Request,
) -> ApiResponse:
    conversion = await service.convert(
        db, current_user.id, body.from_coin, body.to_coin, body.amount
    )
    return respond(request, ConversionResponse.from_conversion(conversion).model_dump(), "Converted")


@router.get("/conversions")
async def list_conversions(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AccountService, Depends(get_account_service)],
    request: Request,
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    conversions = await service.list_conversions(db, current_user.id, limit)
    return respond(request, [ConversionResponse.from_conversion(c).model_dump() for c in conversions])
