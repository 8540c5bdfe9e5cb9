"""FastAPI dependencies: get_current_user and require_admin.

Usage in any protected router:
    @router.get("/protected")
    async def protected(user: Annotated[UserModel, Depends(get_current_user)]): ...

    @router.post("/admin-only", dependencies=[Depends(require_admin)])
    async def admin_only(): ...
"""

import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ex_common.database import get_db_session
from src.ex_common.enums import ActorRole
from src.ex_common.errors import AdminTokenError, InvalidTokenError
from src.ex_gateway.auth.jwt_handler import decode_access_token
from src.ex_gateway.user.db_models import UserModel

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> UserModel:
    """Resolve the Bearer token to a UserModel, or 401.

    A token for a deleted account is rejected like an invalid one.
    """
    try:
        user_id = decode_access_token(token)
    except InvalidTokenError:
        raise _CREDENTIALS_EXCEPTION from None

    result = await db.execute(select(UserModel).where(UserModel.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise _CREDENTIALS_EXCEPTION
    return user


async def require_admin(
    x_admin_token: Annotated[str | None, Header(alias="X-Admin-Token")] = None,
) -> ActorRole:
    """Admin gate: the X-Admin-Token header must equal ADMIN_API_TOKEN.

    With ADMIN_API_TOKEN unset every admin call is refused.
    """
    expected = settings.ADMIN_API_TOKEN
    if not expected or not x_admin_token:
        raise AdminTokenError()
    if not secrets.compare_digest(x_admin_token.encode(), expected.encode()):
        raise AdminTokenError()
    return ActorRole.ADMIN
