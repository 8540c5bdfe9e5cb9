"""JWT access tokens (HS256, shared JWT_SECRET).

Only access tokens exist; they live JWT_EXPIRE_MINUTES (7 days by default)
and cannot be revoked before expiry.
"""

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from config.settings import settings
from src.ex_common.errors import InvalidTokenError

_ALGORITHM = settings.JWT_ALGORITHM
_ACCESS_EXPIRE = timedelta(minutes=settings.JWT_EXPIRE_MINUTES)


def create_access_token(user_id: int) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "type": "access",
        "iat": now,
        "exp": now + _ACCESS_EXPIRE,
    }
    return str(jwt.encode(payload, settings.JWT_SECRET, algorithm=_ALGORITHM))


def decode_access_token(token: str) -> int:
    """Validate ``token`` and return the user id it was issued for.

    Raises:
        InvalidTokenError: bad signature, expired, wrong type or malformed subject.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[_ALGORITHM],  # Explicit list prevents algorithm confusion
        )
    except JWTError:
        raise InvalidTokenError() from None

    if payload.get("type") != "access":
        raise InvalidTokenError()
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise InvalidTokenError() from None
