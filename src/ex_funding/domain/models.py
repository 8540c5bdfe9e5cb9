"""Domain models for ex_funding: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.ex_common.enums import RequestKind, RequestStatus


@dataclass
class FundingRequest:
    """A deposit or withdrawal awaiting (or past) admin review."""

    id: int
    kind: RequestKind
    user_id: int
    coin: str
    amount: Decimal
    address: str | None
    status: RequestStatus = RequestStatus.PENDING
    proof_url: str | None = None            # deposits only
    created_at: datetime | None = None
    reviewed_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status is RequestStatus.PENDING


@dataclass
class DepositAddress:
    """Platform receiving address for one coin, shown on the deposit screen."""

    coin: str
    address: str
    qr_url: str | None = None
    updated_at: datetime | None = None
