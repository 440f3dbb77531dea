"""
Request-scoped wiring: the caller's identity, the app-owned StatusCache,
processor and settlement registry, and the services built on top of them.
Tests override get_status_cache / get_processor / get_settlements.
"""
import secrets

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.paywall.cache import StatusCache
from app.paywall.entitlement import EntitlementResolver
from app.paywall.gate import ProfileGate
from app.referral.service import ReferralAccessService
from app.services.grants.service import GrantApplier
from app.services.payments.processor import PaymentProcessor
from app.services.payments.registry import SettlementRegistry
from app.services.payments.service import PaymentService


def get_client_id(request: Request) -> str | None:
    """Authenticated user id forwarded by the gateway; None for anonymous visitors."""
    value = (request.headers.get(settings.client_id_header) or "").strip()
    return value or None


def require_client_id(client_id: str | None = Depends(get_client_id)) -> str:
    if not client_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return client_id


def require_admin(x_admin_key: str | None = Header(None)) -> None:
    if not settings.admin_api_key:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin API is disabled")
    if not x_admin_key or not secrets.compare_digest(x_admin_key, settings.admin_api_key):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid admin key")


def get_status_cache(request: Request) -> StatusCache:
    return request.app.state.status_cache


def get_processor(request: Request) -> PaymentProcessor:
    return request.app.state.processor


def get_settlements(request: Request) -> SettlementRegistry:
    return request.app.state.settlements


def get_resolver(
    db: Session = Depends(get_db),
    cache: StatusCache = Depends(get_status_cache),
) -> EntitlementResolver:
    return EntitlementResolver(db, cache)


def get_profile_gate(resolver: EntitlementResolver = Depends(get_resolver)) -> ProfileGate:
    return ProfileGate(resolver)


def get_grant_applier(
    db: Session = Depends(get_db),
    cache: StatusCache = Depends(get_status_cache),
) -> GrantApplier:
    return GrantApplier(db, cache)


def get_payment_service(
    db: Session = Depends(get_db),
    processor: PaymentProcessor = Depends(get_processor),
    grants: GrantApplier = Depends(get_grant_applier),
) -> PaymentService:
    return PaymentService(db, processor, grants)


def get_referral_service(db: Session = Depends(get_db)) -> ReferralAccessService:
    return ReferralAccessService(db)
