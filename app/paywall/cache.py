"""
StatusCache: process-local, short-TTL memo of AccessDecision per client.

Owned by whoever composes the engine (FastAPI app.state); never module-global.
Not locked: the worst race is a briefly stale decision. Double free views and
double charges are prevented by the ledgers, not here.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable

from app.paywall.config import get_cache_ttl_seconds
from app.paywall.models import AccessDecision, CacheEntry
from app.utils.metrics import access_cache_total

logger = logging.getLogger(__name__)


class StatusCache:
    def __init__(
        self,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else get_cache_ttl_seconds()
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, client_id: str) -> AccessDecision | None:
        """Return the cached decision, or None on miss/expiry/owner mismatch."""
        entry = self._entries.get(client_id)
        if entry is None:
            access_cache_total.labels(result="miss").inc()
            return None
        if entry.owner_id != client_id or self._clock() - entry.timestamp >= self.ttl_seconds:
            self._entries.pop(client_id, None)
            access_cache_total.labels(result="expired").inc()
            return None
        access_cache_total.labels(result="hit").inc()
        return entry.data

    def put(self, client_id: str, decision: AccessDecision) -> None:
        self._entries[client_id] = CacheEntry(
            data=decision,
            timestamp=self._clock(),
            owner_id=client_id,
        )

    def invalidate(self, client_id: str) -> None:
        if self._entries.pop(client_id, None) is not None:
            logger.info("access_cache_invalidated", extra={"client_id": client_id})

    def patch_new_view(self, client_id: str) -> AccessDecision | None:
        """
        Bump daily_views_count on the live entry after a new view was recorded,
        keeping its timestamp. Without a live entry there is nothing to patch:
        the next resolve reads storage anyway.
        """
        current = self.get(client_id)
        if current is None:
            return None
        patched = current.with_new_view()
        entry = self._entries[client_id]
        self._entries[client_id] = CacheEntry(
            data=patched,
            timestamp=entry.timestamp,
            owner_id=client_id,
        )
        return patched

    def clear(self) -> None:
        self._entries.clear()
