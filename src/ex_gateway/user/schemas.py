"""Pydantic request/response schemas for ex_gateway.

All responses are wrapped in ApiResponse at the router layer.
"""

import re

from pydantic import AliasChoices, BaseModel, EmailStr, Field, field_validator

_OTP_CODE = Field(..., min_length=4, max_length=10, pattern=r"^\d+$")


def _check_password(v: str) -> str:
    if not re.search(r"[A-Za-z]", v):
        raise ValueError("Password must contain at least one letter")
    if not re.search(r"\d", v):
        raise ValueError("Password must contain at least one digit")
    return v


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=64, pattern=r"^[a-zA-Z0-9_.]+$")
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        return _check_password(v)


class LoginRequest(BaseModel):
    """``identifier`` is an email or a username; both match case-insensitively."""

    identifier: str = Field(
        ...,
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("identifier", "email", "username"),
    )
    password: str


class VerifyEmailRequest(BaseModel):
    email: EmailStr
    code: str = _OTP_CODE


class EmailRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    code: str = _OTP_CODE
    new_password: str = Field(..., min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        return _check_password(v)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        return _check_password(v)


class UserInfo(BaseModel):
    user_id: int
    username: str
    email: str
    verified: bool
    kyc_status: str


class RegisterResponse(BaseModel):
    user_id: int
    username: str
    email: str
    verification_required: bool = True


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: UserInfo
