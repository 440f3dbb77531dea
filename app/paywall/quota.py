"""
QuotaLedger: distinct free profile views per (client, UTC day).

The unique (client_id, provider_id, view_date) constraint is what makes concurrent
record_view calls from several tabs safe: at most one insert wins.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date

from sqlalchemy import distinct, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.upsert import insert_for
from app.models.profile_view import ProfileView
from app.paywall.models import ViewResult
from app.utils.dates import utc_today
from app.utils.metrics import profile_views_total

logger = logging.getLogger(__name__)


class QuotaLedger:
    def __init__(self, db: Session, today: Callable[[], date] = utc_today):
        self.db = db
        self._today = today

    def record_view(self, client_id: str, provider_id: str) -> ViewResult:
        """
        Insert-if-absent on (client_id, provider_id, today).
        Storage errors degrade to is_new_view=False: under-counting never blocks browsing.
        """
        stmt = (
            insert_for(self.db, ProfileView)
            .values(client_id=client_id, provider_id=provider_id, view_date=self._today())
            .on_conflict_do_nothing(index_elements=["client_id", "provider_id", "view_date"])
        )
        try:
            res = self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(
                "profile_view_record_failed",
                extra={"client_id": client_id, "provider_id": provider_id, "error": str(e)},
            )
            profile_views_total.labels(result="error").inc()
            return ViewResult(is_new_view=False)

        is_new = res.rowcount > 0
        profile_views_total.labels(result="new" if is_new else "repeat").inc()
        logger.info(
            "profile_view_recorded",
            extra={"client_id": client_id, "provider_id": provider_id, "is_new_view": is_new},
        )
        return ViewResult(is_new_view=is_new)

    def count_distinct_views_today(self, client_id: str) -> int:
        count = (
            self.db.query(func.count(distinct(ProfileView.provider_id)))
            .filter(
                ProfileView.client_id == client_id,
                ProfileView.view_date == self._today(),
            )
            .scalar()
        )
        return count or 0

    def has_viewed_today(self, client_id: str, provider_id: str) -> bool:
        """Storage errors read as not viewed; the quota check then decides."""
        try:
            row = (
                self.db.query(ProfileView.id)
                .filter(
                    ProfileView.client_id == client_id,
                    ProfileView.provider_id == provider_id,
                    ProfileView.view_date == self._today(),
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(
                "profile_view_lookup_failed",
                extra={"client_id": client_id, "provider_id": provider_id, "error": str(e)},
            )
            return False
        return row is not None
