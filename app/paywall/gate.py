"""
Profile gate: the check that runs before a provider profile is fetched.

A provider the client already viewed today is always allowed and costs nothing,
even when the quota is exhausted for new providers.
"""
from __future__ import annotations

import logging

from app.paywall.entitlement import EntitlementResolver
from app.paywall.models import ProfileAccess
from app.paywall.unlocks import UnlockLedger

logger = logging.getLogger(__name__)


class ProfileGate:
    def __init__(self, resolver: EntitlementResolver, unlocks: UnlockLedger | None = None):
        self.resolver = resolver
        self.quota = resolver.quota
        self.cache = resolver.cache
        self.unlocks = unlocks or UnlockLedger(resolver.db)

    def check_profile_view(self, client_id: str | None, provider_id: str) -> ProfileAccess:
        decision = self.resolver.resolve(client_id)
        if not client_id:
            return ProfileAccess(allowed=True, reason="anonymous", decision=decision)
        if decision.has_active_subscription:
            return ProfileAccess(allowed=True, reason="subscribed", decision=decision)
        if self.quota.has_viewed_today(client_id, provider_id):
            return ProfileAccess(allowed=True, reason="already_viewed", decision=decision)
        if decision.can_view_more:
            return ProfileAccess(allowed=True, reason="within_quota", decision=decision)
        logger.info(
            "profile_view_blocked",
            extra={
                "client_id": client_id,
                "provider_id": provider_id,
                "views_count": decision.daily_views_count,
            },
        )
        return ProfileAccess(allowed=False, reason="quota_exhausted", decision=decision)

    def open_profile(self, client_id: str | None, provider_id: str) -> ProfileAccess:
        """check_profile_view, then record the view when allowed."""
        access = self.check_profile_view(client_id, provider_id)
        if not access.allowed or not client_id:
            return access

        result = self.quota.record_view(client_id, provider_id)
        if not result.is_new_view:
            return access

        patched = self.cache.patch_new_view(client_id)
        if patched is None:
            patched = self.resolver.resolve(client_id, force_refresh=True)
        return access.model_copy(update={"decision": patched})

    def can_reveal_contact(self, client_id: str | None, provider_id: str) -> bool:
        return bool(client_id) and self.unlocks.has_unlock(client_id, provider_id)
