"""
Referral programme access config: typed wrappers over app.core.config.settings.
"""
from __future__ import annotations

from app.core.config import settings


def get_referral_access_price() -> int:
    return settings.referral_access_price
