"""Unit tests for ex_gateway Pydantic schemas."""

import pytest
from pydantic import ValidationError

from src.ex_gateway.user.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
)


class TestRegisterRequest:
    def test_valid_input(self) -> None:
        req = RegisterRequest(username="alice.b_1", email="alice@example.com", password="Secure1pass")
        assert req.username == "alice.b_1"

    def test_username_too_short(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="ab", email="a@b.com", password="Secure1pass")

    def test_username_too_long(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="a" * 65, email="a@b.com", password="Secure1pass")

    def test_username_invalid_chars(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="alice!", email="a@b.com", password="Secure1pass")

    def test_invalid_email(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="alice", email="not-an-email", password="Secure1pass")

    def test_password_too_short(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="alice", email="a@b.com", password="Ab1")

    def test_password_needs_digit(self) -> None:
        with pytest.raises(ValidationError, match="digit"):
            RegisterRequest(username="alice", email="a@b.com", password="onlyletters")

    def test_password_needs_letter(self) -> None:
        with pytest.raises(ValidationError, match="letter"):
            RegisterRequest(username="alice", email="a@b.com", password="12345678")


class TestLoginRequest:
    @pytest.mark.parametrize("field", ["identifier", "email", "username"])
    def test_identifier_aliases(self, field: str) -> None:
        req = LoginRequest.model_validate({field: "alice", "password": "x"})
        assert req.identifier == "alice"

    def test_identifier_required(self) -> None:
        with pytest.raises(ValidationError):
            LoginRequest.model_validate({"password": "x"})


class TestCodes:
    def test_code_digits_only(self) -> None:
        with pytest.raises(ValidationError):
            VerifyEmailRequest(email="a@b.com", code="12ab56")

    def test_valid_code(self) -> None:
        assert VerifyEmailRequest(email="a@b.com", code="123456").code == "123456"

    def test_reset_checks_new_password(self) -> None:
        with pytest.raises(ValidationError):
            ResetPasswordRequest(email="a@b.com", code="123456", new_password="weakpassword")

    def test_change_password(self) -> None:
        req = ChangePasswordRequest(current_password="old", new_password="NewPass99")
        assert req.new_password == "NewPass99"
