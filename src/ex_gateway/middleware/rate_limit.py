"""Fixed-window rate limiting for the auth endpoints.

Counts POSTs per client IP in Redis (INCR, then EXPIRE on the first hit of
a window) under ``exsim:ratelimit:<ip>:auth``. Over the limit the request is
answered here with a 429 envelope and a Retry-After header.

If Redis is unreachable the request is let through and a warning logged.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from config.settings import settings
from src.ex_common.errors import RateLimitError
from src.ex_common.redis_client import get_redis, redis_key
from src.ex_common.response import error_response

logger = logging.getLogger(__name__)

_WINDOW_SECONDS = 60


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        limit_per_minute: int | None = None,
        path_prefix: str = "/api/v1/auth/",
        redis_getter: Callable[[], Awaitable[Any]] = get_redis,
    ) -> None:
        super().__init__(app)
        self._limit = limit_per_minute or settings.RATE_LIMIT_AUTH_PER_MINUTE
        self._prefix = path_prefix
        self._redis_getter = redis_getter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method != "POST" or not request.url.path.startswith(self._prefix):
            return await call_next(request)

        key = redis_key("ratelimit", client_ip(request), "auth")
        try:
            redis = await self._redis_getter()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, _WINDOW_SECONDS)
            ttl = await redis.ttl(key) if count > self._limit else 0
        except (RedisError, OSError):
            logger.warning("Rate limiter unavailable; allowing %s", request.url.path, exc_info=True)
            return await call_next(request)

        if count > self._limit:
            err = RateLimitError()
            body = error_response(err.code, err.message)
            body.request_id = getattr(request.state, "request_id", body.request_id)
            retry_after = ttl if ttl and ttl > 0 else _WINDOW_SECONDS
            return JSONResponse(
                status_code=err.http_status,
                content=body.model_dump(),
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
