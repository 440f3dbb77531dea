"""
Paywall config: typed wrappers over app.core.config for quota, cache and prices.
"""
from __future__ import annotations

from app.core.config import settings


def get_daily_free_views_limit() -> int:
    return settings.daily_free_views_limit


def get_cache_ttl_seconds() -> int:
    return settings.access_cache_ttl_seconds


def get_contact_unlock_price() -> int:
    return settings.contact_unlock_price
