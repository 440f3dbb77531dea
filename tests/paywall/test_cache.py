"""StatusCache: TTL, owner check, invalidation, optimistic patch."""
import unittest

from app.paywall.cache import StatusCache
from app.paywall.models import AccessDecision, CacheEntry


def _decision(count: int = 1, subscribed: bool = False) -> AccessDecision:
    return AccessDecision(
        has_active_subscription=subscribed,
        daily_views_count=count,
        daily_views_limit=3,
        can_view_more=subscribed or count < 3,
    )


class _Clock:
    def __init__(self):
        self.t = 1000.0

    def __call__(self) -> float:
        return self.t


class TestStatusCache(unittest.TestCase):
    def setUp(self):
        self.clock = _Clock()
        self.cache = StatusCache(ttl_seconds=300, clock=self.clock)

    def test_miss_returns_none(self):
        self.assertIsNone(self.cache.get("c1"))

    def test_hit_within_ttl(self):
        decision = _decision()
        self.cache.put("c1", decision)
        self.clock.t += 299
        self.assertEqual(self.cache.get("c1"), decision)

    def test_expired_after_ttl(self):
        self.cache.put("c1", _decision())
        self.clock.t += 300
        self.assertIsNone(self.cache.get("c1"))

    def test_entry_of_other_owner_is_ignored(self):
        self.cache._entries["c1"] = CacheEntry(data=_decision(), timestamp=self.clock.t, owner_id="c2")
        self.assertIsNone(self.cache.get("c1"))

    def test_invalidate(self):
        self.cache.put("c1", _decision())
        self.cache.put("c2", _decision())
        self.cache.invalidate("c1")
        self.assertIsNone(self.cache.get("c1"))
        self.assertIsNotNone(self.cache.get("c2"))

    def test_invalidate_unknown_is_noop(self):
        self.cache.invalidate("nobody")
        self.assertIsNone(self.cache.get("nobody"))

    def test_patch_new_view_bumps_count_and_keeps_timestamp(self):
        self.cache.put("c1", _decision(count=2))
        self.clock.t += 200
        patched = self.cache.patch_new_view("c1")

        self.assertEqual(patched.daily_views_count, 3)
        self.assertFalse(patched.can_view_more)
        self.assertEqual(self.cache.get("c1"), patched)
        self.clock.t += 100
        self.assertIsNone(self.cache.get("c1"))

    def test_patch_keeps_subscriber_unblocked(self):
        self.cache.put("c1", _decision(count=5, subscribed=True))
        patched = self.cache.patch_new_view("c1")
        self.assertTrue(patched.can_view_more)

    def test_patch_without_entry_returns_none(self):
        self.assertIsNone(self.cache.patch_new_view("c1"))

    def test_clear(self):
        self.cache.put("c1", _decision())
        self.cache.clear()
        self.assertIsNone(self.cache.get("c1"))
