"""ex_funding REST API: users create and list their deposit/withdrawal requests.

Decisions on requests and edits to the platform deposit addresses live under
/admin. The address list itself is public.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.ex_common.database import get_db_session
from src.ex_common.enums import RequestKind
from src.ex_common.response import ApiResponse, respond
from src.ex_funding.application.schemas import (
    DepositAddressResponse,
    DepositCreateRequest,
    FundingRequestResponse,
    WithdrawalCreateRequest,
)
from src.ex_funding.application.service import FundingService, get_funding_service
from src.ex_gateway.auth.dependencies import get_current_user
from src.ex_gateway.user.db_models import UserModel
from src.ex_profile.api.uploads import read_upload

deposits_router = APIRouter(prefix="/deposits", tags=["deposits"])
withdrawals_router = APIRouter(prefix="/withdrawals", tags=["withdrawals"])


@deposits_router.post("", status_code=status.HTTP_201_CREATED)
async def create_deposit(
    body: DepositCreateRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[FundingService, Depends(get_funding_service)],
    request: Request,
) -> ApiResponse:
    deposit = await service.create_deposit(
        db, current_user.id, body.coin, body.amount, body.address, body.proof_url
    )
    return respond(request, FundingRequestResponse.from_request(deposit).model_dump(), "Deposit submitted")


@deposits_router.get("")
async def list_deposits(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[FundingService, Depends(get_funding_service)],
    request: Request,
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    items = await service.list_for_user(db, RequestKind.DEPOSIT, current_user.id, limit)
    return respond(request, [FundingRequestResponse.from_request(r).model_dump() for r in items])


@deposits_router.get("/addresses")
async def list_deposit_addresses(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[FundingService, Depends(get_funding_service)],
    request: Request,
) -> ApiResponse:
    items = await service.list_deposit_addresses(db)
    return respond(request, [DepositAddressResponse.from_address(a).model_dump() for a in items])


@deposits_router.post("/proof", status_code=status.HTTP_201_CREATED)
async def upload_deposit_proof(
    file: Annotated[UploadFile, File(description="Payment screenshot")],
    current_user: Annotated[UserModel, Depends(get_current_user)],
    service: Annotated[FundingService, Depends(get_funding_service)],
    request: Request,
) -> ApiResponse:
    url = await service.upload_deposit_proof(current_user.id, await read_upload(file))
    return respond(request, {"proof_url": url}, "Proof uploaded")


@withdrawals_router.post("", status_code=status.HTTP_201_CREATED)
async def create_withdrawal(
    body: WithdrawalCreateRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[FundingService, Depends(get_funding_service)],
    request: Request,
) -> ApiResponse:
    withdrawal = await service.create_withdrawal(
        db, current_user.id, body.coin, body.amount, body.address
    )
    return respond(
        request, FundingRequestResponse.from_request(withdrawal).model_dump(), "Withdrawal submitted"
    )


@withdrawals_router.get("")
async def list_withdrawals(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[FundingService, Depends(get_funding_service)],
    request: Request,
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    items = await service.list_for_user(db, RequestKind.WITHDRAWAL, current_user.id, limit)
    return respond(request, [FundingRequestResponse.from_request(r).model_dump() for r in items])
