"""Profile and KYC REST API (JWT required, multipart uploads)."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from src.ex_common.database import get_db_session
from src.ex_common.response import ApiResponse, respond
from src.ex_gateway.auth.dependencies import get_current_user
from src.ex_gateway.user.db_models import UserModel
from src.ex_profile.api.uploads import read_upload
from src.ex_profile.application.service import ProfileService, get_profile_service

profile_router = APIRouter(prefix="/profile", tags=["profile"])
kyc_router = APIRouter(prefix="/kyc", tags=["kyc"])


@profile_router.get("")
async def get_profile(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    service: Annotated[ProfileService, Depends(get_profile_service)],
    request: Request,
) -> ApiResponse:
    return respond(request, service.profile(current_user))


@profile_router.post("/avatar")
async def upload_avatar(
    avatar: Annotated[UploadFile, File(description="Image file")],
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[ProfileService, Depends(get_profile_service)],
    request: Request,
) -> ApiResponse:
    url = await service.upload_avatar(db, current_user.id, await read_upload(avatar))
    return respond(request, {"avatar_url": url}, "Avatar updated")


@kyc_router.post("")
async def submit_kyc(
    selfie: Annotated[UploadFile, File()],
    id_card: Annotated[UploadFile, File()],
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[ProfileService, Depends(get_profile_service)],
    request: Request,
) -> ApiResponse:
    submission = await service.submit_kyc(
        db, current_user.id, await read_upload(selfie), await read_upload(id_card)
    )
    return respond(
        request,
        {
            "status": submission.status,
            "selfie_url": submission.selfie_url,
            "id_card_url": submission.id_card_url,
        },
        "KYC submitted",
    )


@kyc_router.get("/status")
async def kyc_status(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[ProfileService, Depends(get_profile_service)],
    request: Request,
) -> ApiResponse:
    return respond(request, {"status": await service.kyc_status(db, current_user.id)})
