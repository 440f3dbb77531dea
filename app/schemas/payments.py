from datetime import datetime

from pydantic import BaseModel, Field

from app.services.actors.service import Actor
from app.services.payments.models import (
    MobileOperator,
    PaymentDetails,
    PaymentMethod,
    PaymentPurpose,
    SessionStatus,
)


class PaymentCreate(BaseModel):
    purpose: PaymentPurpose
    method: PaymentMethod = PaymentMethod.MOBILE_MONEY
    amount: int | None = Field(None, description="Optional; must equal the fixed price when sent")
    phone: str | None = None
    operator: MobileOperator | None = None
    email: str | None = None
    provider_id: str | None = None
    card_number: str | None = None
    card_expiry: str | None = None
    card_cvv: str | None = None

    def details(self) -> PaymentDetails:
        return PaymentDetails(
            phone=self.phone,
            operator=self.operator,
            email=self.email,
            provider_id=self.provider_id,
            card_number=self.card_number,
            card_expiry=self.card_expiry,
            card_cvv=self.card_cvv,
        )


class PaymentSessionOut(BaseModel):
    reference: str
    purpose: PaymentPurpose
    method: PaymentMethod
    amount: int
    status: SessionStatus
    operator: MobileOperator | None = None
    provider_id: str | None = None
    failure_reason: str | None = None
    polling: bool = False


class PaymentOut(BaseModel):
    reference: str
    purpose: str
    payment_method: str
    amount: int
    status: str
    operator: str | None = None
    provider_id: str | None = None
    failure_reason: str | None = None
    created_at: datetime
    completed_at: datetime | None = None
    granted: bool = False
    polling: bool = False


class PollCancelOut(BaseModel):
    reference: str
    cancelled: bool


class GrantRetryOut(BaseModel):
    reference: str
    granted: bool


class AdminPaymentOut(PaymentOut):
    user_id: str
    actor: Actor | None = None
