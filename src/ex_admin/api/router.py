"""Admin REST API, gated by the X-Admin-Token header."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.ex_admin.application.service import AdminService, get_admin_service
from src.ex_common.database import get_db_session
from src.ex_common.enums import RequestKind
from src.ex_common.response import ApiResponse, respond
from src.ex_funding.application.schemas import DepositAddressResponse, FundingRequestResponse
from src.ex_gateway.auth.dependencies import require_admin
from src.ex_profile.api.uploads import read_upload
from src.ex_trade.application.schemas import TradeResponse

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


class TradeModeRequest(BaseModel):
    mode: str | None = Field(None, description="WIN, LOSE, or null to clear")


class GlobalModeRequest(BaseModel):
    mode: str = Field(..., description="AUTO, ALL_WIN or ALL_LOSE")


class StatusRequest(BaseModel):
    status: str


# ---------------------------------------------------------------------------
# Trade modes
# ---------------------------------------------------------------------------


@router.put("/users/{user_id}/trade-mode")
async def set_user_trade_mode(
    user_id: int,
    body: TradeModeRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AdminService, Depends(get_admin_service)],
    request: Request,
) -> ApiResponse:
    mode = await service.set_user_trade_mode(db, user_id, body.mode)
    return respond(request, {"user_id": user_id, "mode": mode.value if mode else None})


@router.get("/users/{user_id}/trade-mode")
async def get_user_trade_mode(
    user_id: int,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AdminService, Depends(get_admin_service)],
    request: Request,
) -> ApiResponse:
    mode = await service.get_user_trade_mode(db, user_id)
    return respond(request, {"user_id": user_id, "mode": mode.value if mode else None})


@router.get("/trade-modes")
async def list_user_trade_modes(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AdminService, Depends(get_admin_service)],
    request: Request,
) -> ApiResponse:
    modes = await service.list_user_trade_modes(db)
    return respond(request, [{"user_id": uid, "mode": m.value} for uid, m in modes])


@router.put("/trade-mode")
async def set_global_trade_mode(
    body: GlobalModeRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AdminService, Depends(get_admin_service)],
    request: Request,
) -> ApiResponse:
    mode = await service.set_global_trade_mode(db, body.mode)
    return respond(request, {"mode": mode.value})


@router.get("/trade-mode")
async def get_global_trade_mode(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AdminService, Depends(get_admin_service)],
    request: Request,
) -> ApiResponse:
    mode = await service.get_global_trade_mode(db)
    return respond(request, {"mode": mode.value})


# ---------------------------------------------------------------------------
# Deposit / withdrawal decisions
# ---------------------------------------------------------------------------


@router.post("/deposits/{request_id}/status")
async def set_deposit_status(
    request_id: int,
    body: StatusRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AdminService, Depends(get_admin_service)],
    request: Request,
) -> ApiResponse:
    updated = await service.force_request_status(db, RequestKind.DEPOSIT, request_id, body.status)
    return respond(request, FundingRequestResponse.from_request(updated).model_dump())


@router.post("/withdrawals/{request_id}/status")
async def set_withdrawal_status(
    request_id: int,
    body: StatusRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AdminService, Depends(get_admin_service)],
    request: Request,
) -> ApiResponse:
    updated = await service.force_request_status(
        db, RequestKind.WITHDRAWAL, request_id, body.status
    )
    return respond(request, FundingRequestResponse.from_request(updated).model_dump())


@router.get("/deposits")
async def list_deposits(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AdminService, Depends(get_admin_service)],
    request: Request,
    status: str | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
) -> ApiResponse:
    items = await service.list_requests(db, RequestKind.DEPOSIT, limit, status)
    return respond(request, [FundingRequestResponse.from_request(r).model_dump() for r in items])


@router.get("/withdrawals")
async def list_withdrawals(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AdminService, Depends(get_admin_service)],
    request: Request,
    status: str | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
) -> ApiResponse:
    items = await service.list_requests(db, RequestKind.WITHDRAWAL, limit, status)
    return respond(request, [FundingRequestResponse.from_request(r).model_dump() for r in items])


# ---------------------------------------------------------------------------
# Platform deposit addresses
# ---------------------------------------------------------------------------


@router.get("/deposit-addresses")
async def list_deposit_addresses(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AdminService, Depends(get_admin_service)],
    request: Request,
) -> ApiResponse:
    items = await service.list_deposit_addresses(db)
    return respond(request, [DepositAddressResponse.from_address(a).model_dump() for a in items])


@router.post("/deposit-addresses")
async def set_deposit_address(
    coin: Annotated[str, Form()],
    address: Annotated[str, Form()],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AdminService, Depends(get_admin_service)],
    request: Request,
    qr: Annotated[UploadFile | None, File(description="QR code image")] = None,
) -> ApiResponse:
    saved = await service.set_deposit_address(
        db, coin, address, await read_upload(qr) if qr is not None else None
    )
    return respond(
        request, DepositAddressResponse.from_address(saved).model_dump(), "Deposit address saved"
    )


# ---------------------------------------------------------------------------
# Users, KYC, trades, audit
# ---------------------------------------------------------------------------


@router.get("/users")
async def list_users(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AdminService, Depends(get_admin_service)],
    request: Request,
    limit: int = Query(100, ge=1, le=500),
) -> ApiResponse:
    return respond(request, await service.list_users(db, limit))


@router.put("/users/{user_id}/kyc")
async def set_kyc_status(
    user_id: int,
    body: StatusRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AdminService, Depends(get_admin_service)],
    request: Request,
) -> ApiResponse:
    status = await service.set_kyc_status(db, user_id, body.status)
    return respond(request, {"user_id": user_id, "kyc_status": status.value})


@router.delete("/users/{user_id}")
async def delete_account(
    user_id: int,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AdminService, Depends(get_admin_service)],
    request: Request,
) -> ApiResponse:
    await service.delete_account(db, user_id)
    return respond(request, {"user_id": user_id}, "Account deleted")


@router.get("/trades")
async def list_trades(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AdminService, Depends(get_admin_service)],
    request: Request,
    result: str | None = Query(None, description="PENDING, WIN or LOSE"),
    limit: int = Query(100, ge=1, le=500),
) -> ApiResponse:
    trades = await service.list_trades(db, limit, result)
    return respond(request, [TradeResponse.from_trade(t).model_dump() for t in trades])


@router.get("/audit")
async def audit_ledger(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AdminService, Depends(get_admin_service)],
    request: Request,
) -> ApiResponse:
    issues = await service.audit_ledger(db)
    return respond(
        request,
        {
            "ok": not issues,
            "issues": [
                {"kind": i.kind, "user_id": i.user_id, "coin": i.coin, "detail": i.detail}
                for i in issues
            ],
        },
    )
