"""Earn wallet REST API: move funds between the main balance and earn."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ex_account.application.schemas import (
    BalanceResponse,
    EarnPositionResponse,
    EarnTransferRequest,
    EarnTransferResponse,
)
from src.ex_account.application.service import AccountService, get_account_service
from src.ex_common.database import get_db_session
from src.ex_common.response import ApiResponse, respond
from src.ex_gateway.auth.dependencies import get_current_user
from src.ex_gateway.user.db_models import UserModel

router = APIRouter(prefix="/earn", tags=["earn"])


@router.get("")
async def earn_balances(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AccountService, Depends(get_account_service)],
    request: Request,
) -> ApiResponse:
    positions = await service.earn_balances(db, current_user.id)
    return respond(request, [EarnPositionResponse.from_position(p).model_dump() for p in positions])


@router.post("/deposit")
async def earn_deposit(
    body: EarnTransferRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AccountService, Depends(get_account_service)],
    request: Request,
) -> ApiResponse:
    main, earn = await service.earn_deposit(db, current_user.id, body.coin, body.amount)
    data = EarnTransferResponse(
        main=BalanceResponse.from_balance(main), earn=EarnPositionResponse.from_position(earn)
    )
    return respond(request, data.model_dump(), "Moved to earn")


@router.post("/withdraw")
async def earn_withdraw(
    body: EarnTransferRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AccountService, Depends(get_account_service)],
    request: Request,
) -> ApiResponse:
    main, earn = await service.earn_withdraw(db, current_user.id, body.coin, body.amount)
    data = EarnTransferResponse(
        main=BalanceResponse.from_balance(main), earn=EarnPositionResponse.from_position(earn)
    )
    return respond(request, data.model_dump(), "Moved to main balance")
