"""
ReferralAccessService: who may use the referral programme.

Access comes from an active subscription or from a one-off lifetime fee.
Code/reward bookkeeping lives elsewhere; this only answers and records access.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Literal

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import LedgerWriteError
from app.db.upsert import insert_for
from app.models.referral_access import ReferralAccess
from app.models.subscription import Subscription
from app.paywall.entitlement import is_subscription_active
from app.referral.config import get_referral_access_price
from app.utils.dates import utc_now

logger = logging.getLogger(__name__)

AccessType = Literal["subscription", "payment", "none"]


class ReferralAccessStatus(BaseModel):
    has_access: bool
    access_type: AccessType
    message: str

    model_config = {"frozen": True}


class ReferralAccessService:
    def __init__(self, db: Session, now: Callable[[], datetime] = utc_now):
        self.db = db
        self._now = now

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_paid_access(self, user_id: str) -> ReferralAccess | None:
        return (
            self.db.query(ReferralAccess)
            .filter(ReferralAccess.user_id == user_id)
            .one_or_none()
        )

    def check_access(self, user_id: str) -> ReferralAccessStatus:
        subscription = (
            self.db.query(Subscription)
            .filter(Subscription.user_id == user_id)
            .one_or_none()
        )
        if is_subscription_active(subscription, self._now()):
            return ReferralAccessStatus(
                has_access=True,
                access_type="subscription",
                message="Referral program included with your subscription",
            )

        if self.get_paid_access(user_id) is not None:
            return ReferralAccessStatus(
                has_access=True,
                access_type="payment",
                message="Lifetime referral program access",
            )

        return ReferralAccessStatus(
            has_access=False,
            access_type="none",
            message=f"Subscribe or pay K{get_referral_access_price()} once to join the referral program",
        )

    # ------------------------------------------------------------------
    # Grant (called by the Grant Applier; does not commit)
    # ------------------------------------------------------------------

    def grant(
        self,
        user_id: str,
        amount: int,
        payment_method: str,
        reference: str | None = None,
    ) -> ReferralAccess:
        """Idempotent: a second grant for the same user keeps the first row."""
        stmt = (
            insert_for(self.db, ReferralAccess)
            .values(
                user_id=user_id,
                amount=amount,
                payment_method=payment_method,
                payment_reference=reference,
            )
            .on_conflict_do_nothing(index_elements=["user_id"])
        )
        try:
            res = self.db.execute(stmt)
            access = self.get_paid_access(user_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "referral_access_write_failed",
                extra={"user_id": user_id, "reference": reference, "error": str(e)},
            )
            raise LedgerWriteError(f"Could not record referral access: {e}") from e

        logger.info(
            "referral_access_granted" if res.rowcount else "referral_access_already_granted",
            extra={"user_id": user_id, "reference": reference, "amount": amount},
        )
        return access
