"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  2xxx: Account / balances
  3xxx: Market data
  4xxx: Trade
  5xxx: Deposit / withdrawal requests
  6xxx: Admin / KYC / storage
  9xxx: System
"""

from decimal import Decimal


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth/User ---

class UsernameExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Username already exists", 409)


class EmailExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Email already exists", 409)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid email/username or password", 401)


class EmailNotVerifiedError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Email address is not verified", 403)


class InvalidTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1005, "Token is invalid or expired", 401)


class InvalidOtpError(AppError):
    def __init__(self) -> None:
        super().__init__(1006, "Verification code is invalid or expired", 400)


class UserNotFoundError(AppError):
    def __init__(self, user_id: int) -> None:
        super().__init__(1007, f"User not found: {user_id}", 404)


# --- 2xxx: Account ---

class InsufficientFundsError(AppError):
    def __init__(self, coin: str, required: Decimal, available: Decimal) -> None:
        super().__init__(
            2001,
            f"Insufficient {coin} balance: required {required}, available {available}",
            422,
        )


class AccountNotFoundError(AppError):
    def __init__(self, user_id: int, coin: str) -> None:
        super().__init__(2002, f"No {coin} balance for user {user_id}", 404)


class UnsupportedCoinError(AppError):
    def __init__(self, coin: str) -> None:
        super().__init__(2003, f"Unsupported coin: {coin}", 422)


# --- 3xxx: Market ---

class UnsupportedSymbolError(AppError):
    def __init__(self, symbol: str) -> None:
        super().__init__(3001, f"Unsupported symbol: {symbol}", 422)


class PriceUnavailableError(AppError):
    def __init__(self, symbol: str) -> None:
        super().__init__(3002, f"Live price unavailable for {symbol}", 503)


# --- 4xxx: Trade ---

class TradeNotFoundError(AppError):
    def __init__(self, trade_id: int) -> None:
        super().__init__(4001, f"Trade not found: {trade_id}", 404)


# --- 5xxx: Deposit / withdrawal requests ---

class RequestNotFoundError(AppError):
    def __init__(self, kind: str, request_id: int) -> None:
        super().__init__(5001, f"{kind.capitalize()} request not found: {request_id}", 404)


class AlreadyFinalizedError(AppError):
    def __init__(self, kind: str, request_id: int, status: str) -> None:
        super().__init__(
            5002,
            f"{kind.capitalize()} request {request_id} is already {status}",
            409,
        )


# --- 6xxx: Admin / KYC / storage ---

class KycAlreadySubmittedError(AppError):
    def __init__(self, status: str) -> None:
        super().__init__(6001, f"KYC already {status}", 409)


class InvalidTradeModeError(AppError):
    def __init__(self, mode: str) -> None:
        super().__init__(6002, f"Invalid trade mode: {mode}", 422)


class StorageUnavailableError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(6003, f"File storage failed: {detail}", 502)


class PermissionDeniedError(AppError):
    def __init__(self, action: str) -> None:
        super().__init__(6098, f"Not permitted: {action}", 403)


class AdminTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(6099, "Admin token missing or invalid", 403)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class InvalidRequestError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(9003, detail, 422)
