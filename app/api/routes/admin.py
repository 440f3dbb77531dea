"""
Admin API: payments overview with the payer resolved to a provider or client.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_settlements, require_admin
from app.api.routes.payments import payment_to_out
from app.db.session import get_db
from app.models.payment import Payment
from app.schemas.payments import AdminPaymentOut
from app.services.actors.service import ActorService
from app.services.payments.registry import SettlementRegistry

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/payments", response_model=list[AdminPaymentOut])
def admin_list_payments(
    status: str | None = Query(None, description="pending / completed / failed / timed_out"),
    purpose: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    settlements: SettlementRegistry = Depends(get_settlements),
) -> list[AdminPaymentOut]:
    q = db.query(Payment)
    if status:
        q = q.filter(Payment.status == status)
    if purpose:
        q = q.filter(Payment.purpose == purpose)
    payments = q.order_by(Payment.created_at.desc()).limit(limit).all()

    actors = ActorService(db).resolve_many([p.user_id for p in payments])
    return [
        AdminPaymentOut(
            **payment_to_out(p, polling=settlements.is_running(p.reference)).model_dump(),
            user_id=p.user_id,
            actor=actors.get(p.user_id),
        )
        for p in payments
    ]
