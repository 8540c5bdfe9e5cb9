"""Auth API router: register, email verification, login, password flows.

All endpoints return ApiResponse. request_id is read from request.state
(injected by RequestLogMiddleware).
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ex_common.database import get_db_session
from src.ex_common.response import ApiResponse, respond
from src.ex_gateway.auth.dependencies import get_current_user
from src.ex_gateway.user.db_models import UserModel
from src.ex_gateway.user.schemas import (
    ChangePasswordRequest,
    EmailRequest,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    UserInfo,
    VerifyEmailRequest,
)
from src.ex_gateway.user.service import UserService

router = APIRouter(prefix="/auth", tags=["auth"])

_service: UserService | None = None


def get_user_service() -> UserService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = UserService()
    return _service


def _user_info(user: UserModel) -> UserInfo:
    return UserInfo(
        user_id=user.id,
        username=user.username,
        email=user.email,
        verified=user.verified,
        kyc_status=user.kyc_status,
    )


@router.post("/register", status_code=status.HTTP_201_CREATED, summary="User registration")
async def register(
    request: Request,
    body: RegisterRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> ApiResponse:
    user, created = await service.register(db, body.username, body.email, body.password)
    data = RegisterResponse(user_id=user.id, username=user.username, email=user.email)
    message = "User registered; verification code sent" if created else "Verification code re-sent"
    return respond(request, data.model_dump(), message)


@router.post("/verify-email", summary="Confirm email with the emailed code")
async def verify_email(
    request: Request,
    body: VerifyEmailRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> ApiResponse:
    user = await service.verify_email(db, body.email, body.code)
    return respond(request, _user_info(user).model_dump(), "Email verified")


@router.post("/resend-code", summary="Re-send the verification code")
async def resend_code(
    request: Request,
    body: EmailRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> ApiResponse:
    await service.resend_code(db, body.email)
    return respond(request, None, "If the account is awaiting verification, a code was sent")


@router.post("/login", summary="User login")
async def login(
    request: Request,
    body: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> ApiResponse:
    user, access_token = await service.login(db, body.identifier, body.password)
    data = LoginResponse(
        access_token=access_token,
        expires_in=settings.JWT_EXPIRE_MINUTES * 60,
        user=_user_info(user),
    )
    return respond(request, data.model_dump(), "Login successful")


@router.post("/forgot-password", summary="Email a password reset code")
async def forgot_password(
    request: Request,
    body: EmailRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> ApiResponse:
    await service.forgot_password(db, body.email)
    return respond(request, None, "If the account exists, a reset code was sent")


@router.post("/reset-password", summary="Set a new password with a reset code")
async def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> ApiResponse:
    await service.reset_password(db, body.email, body.code, body.new_password)
    return respond(request, None, "Password reset")


@router.post("/change-password", summary="Change password while logged in")
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> ApiResponse:
    await service.change_password(db, current_user, body.current_password, body.new_password)
    return respond(request, None, "Password changed")


@router.get("/me", summary="Current user")
async def me(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
) -> ApiResponse:
    return respond(request, _user_info(current_user).model_dump())
