"""
Payment enums and DTOs shared by the session state machine, poller and processor.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field


class PaymentPurpose(str, Enum):
    SUBSCRIPTION = "subscription"
    CONTACT_UNLOCK = "contact_unlock"
    REFERRAL_ACCESS = "referral_access"


class PaymentMethod(str, Enum):
    MOBILE_MONEY = "mobile_money"
    CARD = "card"


class MobileOperator(str, Enum):
    MTN = "mtn"
    AIRTEL = "airtel"
    ZAMTEL = "zamtel"


class SessionStatus(str, Enum):
    IDLE = "idle"
    CREATED = "created"
    WAITING_APPROVAL = "waiting_approval"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


TERMINAL_STATUSES = frozenset({
    SessionStatus.COMPLETED,
    SessionStatus.FAILED,
    SessionStatus.TIMED_OUT,
})


class PaymentDetails(BaseModel):
    """Caller-supplied details; which fields are required depends on method and purpose."""

    phone: str | None = None
    operator: MobileOperator | None = None
    email: str | None = None
    provider_id: str | None = None
    card_number: str | None = None
    card_expiry: str | None = Field(None, description="MM/YY")
    card_cvv: str | None = None


@dataclass(frozen=True)
class InitiationRequest:
    client_id: str
    purpose: PaymentPurpose
    amount: int
    phone: str
    operator: MobileOperator
    provider_id: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class ProcessorStatus:
    """Normalized processor answer: status is pending, completed or failed."""

    status: str
    message: str | None = None


@dataclass(frozen=True)
class SettlementResult:
    status: SessionStatus
    message: str | None
    attempts: int
