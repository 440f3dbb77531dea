from fastapi import APIRouter, Depends, Response, status

from app.api.deps import (
    get_client_id,
    get_grant_applier,
    get_profile_gate,
    get_resolver,
    require_client_id,
)
from app.paywall.entitlement import EntitlementResolver
from app.paywall.gate import ProfileGate
from app.paywall.models import AccessDecision, ProfileAccess
from app.schemas.access import ContactAccessOut, SubscriptionCancelOut, UnlockedProvidersOut
from app.services.grants.service import GrantApplier


router = APIRouter(tags=["access"])


@router.get("/access", response_model=AccessDecision)
def get_access(
    client_id: str | None = Depends(get_client_id),
    resolver: EntitlementResolver = Depends(get_resolver),
) -> AccessDecision:
    return resolver.resolve(client_id)


@router.post("/providers/{provider_id}/view", response_model=ProfileAccess)
def open_provider_profile(
    provider_id: str,
    response: Response,
    client_id: str | None = Depends(get_client_id),
    gate: ProfileGate = Depends(get_profile_gate),
) -> ProfileAccess:
    """Call before loading provider detail. 403 carries the decision for the paywall dialog."""
    access = gate.open_profile(client_id, provider_id)
    if not access.allowed:
        response.status_code = status.HTTP_403_FORBIDDEN
    return access


@router.get("/providers/{provider_id}/contact", response_model=ContactAccessOut)
def get_provider_contact_access(
    provider_id: str,
    client_id: str | None = Depends(get_client_id),
    gate: ProfileGate = Depends(get_profile_gate),
) -> ContactAccessOut:
    return ContactAccessOut(provider_id=provider_id, unlocked=gate.can_reveal_contact(client_id, provider_id))


@router.get("/unlocks", response_model=UnlockedProvidersOut)
def list_unlocked_providers(
    client_id: str = Depends(require_client_id),
    gate: ProfileGate = Depends(get_profile_gate),
) -> UnlockedProvidersOut:
    return UnlockedProvidersOut(provider_ids=gate.unlocks.list_unlocked_providers(client_id))


@router.post("/subscription/cancel", response_model=SubscriptionCancelOut)
def cancel_subscription(
    client_id: str = Depends(require_client_id),
    grants: GrantApplier = Depends(get_grant_applier),
) -> SubscriptionCancelOut:
    return SubscriptionCancelOut(cancelled=grants.cancel_subscription(client_id))
