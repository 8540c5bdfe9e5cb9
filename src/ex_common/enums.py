"""Global enums: must match DB CHECK constraints exactly."""

from enum import Enum


class KycStatus(str, Enum):
    UNVERIFIED = "unverified"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TradeDirection(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class TradeResult(str, Enum):
    PENDING = "PENDING"
    WIN = "WIN"
    LOSE = "LOSE"


class UserTradeMode(str, Enum):
    """Per-account override; absence of a row means no override."""
    WIN = "WIN"
    LOSE = "LOSE"


class GlobalTradeMode(str, Enum):
    AUTO = "AUTO"
    ALL_WIN = "ALL_WIN"
    ALL_LOSE = "ALL_LOSE"


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.PENDING


class RequestKind(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class LedgerKind(str, Enum):
    """Which per-coin ledger a transfer touches."""
    MAIN = "MAIN"
    EARN = "EARN"


class BalanceDirection(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class ActorRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class OtpPurpose(str, Enum):
    VERIFY_EMAIL = "verify"
    RESET_PASSWORD = "reset"
