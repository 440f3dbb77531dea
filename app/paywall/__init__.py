"""
Paywall: who may open a provider profile or reveal its contact.
Decision (EntitlementResolver) and ledgers (QuotaLedger, UnlockLedger) are separate;
StatusCache memoizes decisions per client.
"""
from app.paywall.audit import record_grant
from app.paywall.cache import StatusCache
from app.paywall.entitlement import EntitlementResolver, is_subscription_active
from app.paywall.gate import ProfileGate
from app.paywall.models import (
    AccessDecision,
    CacheEntry,
    ProfileAccess,
    ViewResult,
)
from app.paywall.quota import QuotaLedger
from app.paywall.unlocks import UnlockLedger

__all__ = [
    "AccessDecision",
    "CacheEntry",
    "EntitlementResolver",
    "ProfileAccess",
    "ProfileGate",
    "QuotaLedger",
    "StatusCache",
    "UnlockLedger",
    "ViewResult",
    "is_subscription_active",
    "record_grant",
]
