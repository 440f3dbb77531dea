"""EntitlementResolver: subscription overrides quota, anonymous guardrail, cache use, fail-open."""
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.models.subscription import Subscription
from app.paywall.cache import StatusCache
from app.paywall.entitlement import EntitlementResolver, is_subscription_active
from app.paywall.quota import QuotaLedger


def _subscribe(db, client_id, start, days=30, active=True):
    db.add(
        Subscription(
            user_id=client_id,
            active=active,
            plan="monthly",
            amount=100,
            start_date=start,
            end_date=start + timedelta(days=days),
        )
    )
    db.commit()


@pytest.fixture
def cache():
    return StatusCache(ttl_seconds=300)


@pytest.fixture
def quota(db, clock):
    return QuotaLedger(db, today=clock.today)


@pytest.fixture
def resolver(db, cache, quota, clock):
    return EntitlementResolver(db, cache, quota=quota, now=clock.now)


class TestIsSubscriptionActive:
    def test_none(self, clock):
        assert is_subscription_active(None, clock.now()) is False

    def test_active_flag_alone_is_not_enough(self, clock):
        record = Subscription(active=True, end_date=clock.now() - timedelta(seconds=1))
        assert is_subscription_active(record, clock.now()) is False

    def test_inactive_with_future_end(self, clock):
        record = Subscription(active=False, end_date=clock.now() + timedelta(days=3))
        assert is_subscription_active(record, clock.now()) is False

    def test_active_and_not_ended(self, clock):
        record = Subscription(active=True, end_date=clock.now() + timedelta(days=3))
        assert is_subscription_active(record, clock.now()) is True


class TestResolve:
    def test_anonymous_gets_unmetered_guest_decision(self, resolver, cache):
        decision = resolver.resolve(None)
        assert decision.has_active_subscription is False
        assert decision.daily_views_count == 0
        assert decision.daily_views_limit == 3
        assert decision.can_view_more is True
        assert cache._entries == {}

    def test_fresh_client_can_view(self, resolver):
        decision = resolver.resolve("c1")
        assert decision.daily_views_count == 0
        assert decision.can_view_more is True
        assert decision.subscription_ends_at is None

    def test_quota_exhausted_after_three_distinct_providers(self, resolver, quota):
        for provider in ("p1", "p2", "p3"):
            quota.record_view("c1", provider)
        decision = resolver.resolve("c1")
        assert decision.daily_views_count == 3
        assert decision.can_view_more is False

    def test_subscription_overrides_quota(self, db, resolver, quota, clock):
        _subscribe(db, "c1", clock.now() - timedelta(days=1))
        for provider in ("p1", "p2", "p3", "p4", "p5"):
            quota.record_view("c1", provider)

        decision = resolver.resolve("c1")

        assert decision.has_active_subscription is True
        assert decision.daily_views_count == 5
        assert decision.can_view_more is True
        assert decision.subscription_ends_at == clock.now() + timedelta(days=29)

    def test_expired_subscription_falls_back_to_quota(self, db, resolver, quota, clock):
        _subscribe(db, "c1", clock.now() - timedelta(days=31))
        for provider in ("p1", "p2", "p3"):
            quota.record_view("c1", provider)

        decision = resolver.resolve("c1")

        assert decision.has_active_subscription is False
        assert decision.can_view_more is False

    def test_second_resolve_is_served_from_cache(self, resolver, quota):
        first = resolver.resolve("c1")
        quota.record_view("c1", "p1")

        assert resolver.resolve("c1") == first
        assert resolver.resolve("c1", force_refresh=True).daily_views_count == 1

    def test_storage_error_fails_open_and_is_not_cached(self, cache):
        db = MagicMock()
        db.query.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        resolver = EntitlementResolver(db, cache)

        decision = resolver.resolve("c1")

        assert decision.can_view_more is True
        assert decision.has_active_subscription is False
        assert cache.get("c1") is None
        db.rollback.assert_called_once()
