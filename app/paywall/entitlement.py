"""
EntitlementResolver: resolve(client_id) -> AccessDecision.
Guardrails: anonymous -> unmetered; active subscription -> can_view_more regardless of quota.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.subscription import Subscription
from app.paywall.cache import StatusCache
from app.paywall.config import get_daily_free_views_limit
from app.paywall.models import AccessDecision
from app.paywall.quota import QuotaLedger
from app.utils.dates import as_utc, utc_now
from app.utils.metrics import access_decisions_total

logger = logging.getLogger(__name__)


def is_subscription_active(record: Subscription | None, now: datetime) -> bool:
    """`active` alone is advisory; the plan must also not have ended."""
    if record is None or not record.active:
        return False
    return now < as_utc(record.end_date)


class EntitlementResolver:
    def __init__(
        self,
        db: Session,
        cache: StatusCache,
        quota: QuotaLedger | None = None,
        now: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.cache = cache
        self.quota = quota or QuotaLedger(db)
        self._now = now

    def guest_decision(self) -> AccessDecision:
        return AccessDecision(
            has_active_subscription=False,
            daily_views_count=0,
            daily_views_limit=get_daily_free_views_limit(),
            can_view_more=True,
        )

    def resolve(self, client_id: str | None, force_refresh: bool = False) -> AccessDecision:
        # Anonymous browsing is unmetered.
        if not client_id:
            access_decisions_total.labels(source="anonymous").inc()
            return self.guest_decision()

        if not force_refresh:
            cached = self.cache.get(client_id)
            if cached is not None:
                access_decisions_total.labels(source="cache").inc()
                return cached

        try:
            decision = self._compute(client_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(
                "access_resolve_failed",
                extra={"client_id": client_id, "error": str(e)},
            )
            access_decisions_total.labels(source="fallback").inc()
            return self.guest_decision()

        self.cache.put(client_id, decision)
        access_decisions_total.labels(source="storage").inc()
        logger.info(
            "access_resolved",
            extra={
                "client_id": client_id,
                "views_count": decision.daily_views_count,
                "status": "subscribed" if decision.has_active_subscription else "free",
            },
        )
        return decision

    def _compute(self, client_id: str) -> AccessDecision:
        record = (
            self.db.query(Subscription)
            .filter(Subscription.user_id == client_id)
            .populate_existing()
            .one_or_none()
        )
        has_active = is_subscription_active(record, self._now())
        views = self.quota.count_distinct_views_today(client_id)
        limit = get_daily_free_views_limit()
        return AccessDecision(
            has_active_subscription=has_active,
            daily_views_count=views,
            daily_views_limit=limit,
            can_view_more=has_active or views < limit,
            subscription_ends_at=as_utc(record.end_date) if has_active else None,
        )
