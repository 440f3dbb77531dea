from app.models.contact_unlock import ContactUnlock
from app.models.payment import Payment
from app.models.profile import ClientProfile, ProviderProfile
from app.models.profile_view import ProfileView
from app.models.referral_access import ReferralAccess
from app.models.subscription import Subscription

__all__ = [
    "ClientProfile",
    "ContactUnlock",
    "Payment",
    "ProfileView",
    "ProviderProfile",
    "ReferralAccess",
    "Subscription",
]
