"""
Fixed policy prices (not user input): the amount of a session is derived from its purpose.
"""
from __future__ import annotations

from datetime import timedelta

from app.core.config import settings
from app.paywall.config import get_contact_unlock_price
from app.referral.config import get_referral_access_price
from app.services.payments.models import PaymentPurpose


def price_for(purpose: PaymentPurpose) -> int:
    if purpose == PaymentPurpose.SUBSCRIPTION:
        return settings.subscription_price
    if purpose == PaymentPurpose.CONTACT_UNLOCK:
        return get_contact_unlock_price()
    return get_referral_access_price()


def get_subscription_period() -> timedelta:
    return timedelta(days=settings.subscription_period_days)
