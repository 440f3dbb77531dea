"""
Payments API: start a session, follow it, stop following it, re-check it.
Mobile-money settlement runs as a background task on the app's SettlementRegistry;
card payments are granted before the response is sent.
"""
import asyncio

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_payment_service, get_settlements, require_client_id
from app.models.payment import Payment
from app.schemas.payments import (
    GrantRetryOut,
    PaymentCreate,
    PaymentOut,
    PaymentSessionOut,
    PollCancelOut,
)
from app.services.payments.models import SessionStatus
from app.services.payments.registry import SettlementRegistry
from app.services.payments.service import PaymentService


router = APIRouter(prefix="/payments", tags=["payments"])


def payment_to_out(payment: Payment, polling: bool = False) -> PaymentOut:
    return PaymentOut(
        reference=payment.reference,
        purpose=payment.purpose,
        payment_method=payment.payment_method,
        amount=payment.amount,
        status=payment.status,
        operator=payment.operator,
        provider_id=payment.provider_id,
        failure_reason=payment.failure_reason,
        created_at=payment.created_at,
        completed_at=payment.completed_at,
        granted=payment.granted_at is not None,
        polling=polling,
    )


def _owned_payment(service: PaymentService, reference: str, client_id: str) -> Payment:
    payment = service.get_payment(reference)
    if payment is None or payment.user_id != client_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    return payment


@router.post("", response_model=PaymentSessionOut, status_code=status.HTTP_201_CREATED)
async def create_payment(
    payload: PaymentCreate,
    client_id: str = Depends(require_client_id),
    service: PaymentService = Depends(get_payment_service),
    settlements: SettlementRegistry = Depends(get_settlements),
) -> PaymentSessionOut:
    session = await asyncio.to_thread(
        service.start_payment,
        client_id,
        payload.purpose,
        payload.method,
        payload.details(),
        payload.amount,
    )

    polling = False
    if session.status == SessionStatus.COMPLETED:
        await asyncio.to_thread(service.settle_card, session)
    else:
        settlements.start(session)
        polling = True

    return PaymentSessionOut(
        reference=session.reference,
        purpose=session.purpose,
        method=session.method,
        amount=session.amount,
        status=session.status,
        operator=session.operator,
        provider_id=session.provider_id,
        failure_reason=session.failure_reason,
        polling=polling,
    )


@router.get("", response_model=list[PaymentOut])
def list_payments(
    client_id: str = Depends(require_client_id),
    service: PaymentService = Depends(get_payment_service),
    settlements: SettlementRegistry = Depends(get_settlements),
) -> list[PaymentOut]:
    return [
        payment_to_out(p, polling=settlements.is_running(p.reference))
        for p in service.get_user_payments(client_id)
    ]


@router.get("/{reference}", response_model=PaymentOut)
def get_payment(
    reference: str,
    client_id: str = Depends(require_client_id),
    service: PaymentService = Depends(get_payment_service),
    settlements: SettlementRegistry = Depends(get_settlements),
) -> PaymentOut:
    payment = _owned_payment(service, reference, client_id)
    return payment_to_out(payment, polling=settlements.is_running(reference))


@router.delete("/{reference}/poll", response_model=PollCancelOut)
def stop_polling(
    reference: str,
    client_id: str = Depends(require_client_id),
    service: PaymentService = Depends(get_payment_service),
    settlements: SettlementRegistry = Depends(get_settlements),
) -> PollCancelOut:
    """Dialog closed. The payment itself is untouched and may still settle at the processor."""
    _owned_payment(service, reference, client_id)
    return PollCancelOut(reference=reference, cancelled=settlements.cancel(reference))


@router.post("/{reference}/grant", response_model=GrantRetryOut)
def retry_grant(
    reference: str,
    client_id: str = Depends(require_client_id),
    service: PaymentService = Depends(get_payment_service),
) -> GrantRetryOut:
    """Re-apply the purchase effect of a completed payment (no-op when already granted)."""
    _owned_payment(service, reference, client_id)
    return GrantRetryOut(reference=reference, granted=service.retry_grant(reference, client_id))


@router.post("/{reference}/verify", response_model=PaymentOut)
def verify_payment(
    reference: str,
    client_id: str = Depends(require_client_id),
    service: PaymentService = Depends(get_payment_service),
    settlements: SettlementRegistry = Depends(get_settlements),
) -> PaymentOut:
    """Ask the processor once more about a payment that is no longer being polled."""
    _owned_payment(service, reference, client_id)
    payment = service.verify_payment(reference, client_id)
    return payment_to_out(payment, polling=settlements.is_running(reference))
