"""One-time numeric codes for email verification and password reset.

Codes live in Redis under ``exsim:otp:<purpose>:<email>`` with a TTL; issuing
a new code replaces the old one and a successful check deletes it.
"""

import secrets
from collections.abc import Awaitable, Callable
from typing import Any

from config.settings import settings
from src.ex_common.enums import OtpPurpose
from src.ex_common.redis_client import get_redis, redis_key


class OtpStore:
    def __init__(
        self,
        redis_getter: Callable[[], Awaitable[Any]] = get_redis,
        ttl_seconds: int | None = None,
        length: int | None = None,
    ) -> None:
        self._redis_getter = redis_getter
        self._ttl = ttl_seconds or settings.OTP_TTL_SECONDS
        self._length = length or settings.OTP_LENGTH

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def _key(self, purpose: OtpPurpose, email: str) -> str:
        return redis_key("otp", purpose.value, email.strip().lower())

    def _generate(self) -> str:
        return "".join(secrets.choice("0123456789") for _ in range(self._length))

    async def issue(self, purpose: OtpPurpose, email: str) -> str:
        code = self._generate()
        redis = await self._redis_getter()
        await redis.set(self._key(purpose, email), code, ex=self._ttl)
        return code

    async def verify(self, purpose: OtpPurpose, email: str, code: str) -> bool:
        redis = await self._redis_getter()
        key = self._key(purpose, email)
        stored = await redis.get(key)
        if stored is None or not secrets.compare_digest(str(stored), (code or "").strip()):
            return False
        await redis.delete(key)
        return True
